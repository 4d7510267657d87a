"""
Message routing: from a raw inbound message to the one feature that answers it.

- **matcher.py**: trigger word and command detection.
- **envelope.py**: builds the frozen `MessageEnvelope` from a Discord message.
- **gating.py**: per-message permissions for each handler category.
- **handler.py**: `MessageHandler` / `FallbackHandler` base classes.
- **dispatcher.py**: ordered first-claim-wins chain plus the moderation side channel.
"""
