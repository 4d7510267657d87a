"""
Discord Cogs.

- **message_listener.py**: `on_message` -> envelope -> dispatcher, one task per message.
"""
