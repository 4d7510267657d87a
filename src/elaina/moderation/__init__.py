"""
Group moderation.

- **moderation_engine.py**: `ModerationEngine`, the warning state machine and
  the `!peraturan` admin commands.
- **moderation_parsing.py**: tolerant extraction and validation of judgment JSON.
- **redeem.py**: pluggable detection of warning-reduction requests.
- **rules.py**: rules text sanitising, previews and rules-channel discovery.
"""
