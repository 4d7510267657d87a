"""
Chat transport.

- **ports.py**: the `ChatTransport` protocol and `GroupInfo`.
- **discord_transport.py**: `DiscordTransport`, the py-cord implementation.
"""
