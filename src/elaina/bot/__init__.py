"""
Discord integration.

- **wiring.py**: builds the dispatcher, handlers and moderation engine from config.
- **cogs/**: py-cord Cogs registered at startup.
"""
