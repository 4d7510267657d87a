"""
Feature handlers offered each message by the dispatcher, in this order:

- **moderation_commands.py**: `!peraturan` / `!rules` admin commands.
- **core_commands.py**: `!help`, `!whoami`, persona and pro mode.
- **tagall.py**: mention every group member.
- **tiktok_link.py**: TikTok media relay (priority).
- **vision.py**: describe images captioned with the trigger word.
- **voice_note.py**: transcribe voice notes and answer when addressed.
- **fallback.py**: conversational responder for everything unclaimed.
- **base.py**: `TransportHandler`, the shared reply helper.
"""
