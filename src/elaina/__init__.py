"""
Elaina: a conversational Discord bot with group moderation.

- **routing/**: envelope extraction, gating and the handler chain.
- **features/**: command, media and conversational handlers.
- **moderation/**: rules, warning ledger, removal and redeem.
- **ai/**: model access, judgment client and personas.
- **database/**, **repositories/**, **services/**: SQLite persistence.
- **transport/**: chat platform port and the py-cord implementation.
- **bot/**: wiring and Cogs; **main.py** is the entry point.
"""
