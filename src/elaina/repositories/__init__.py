"""
SQL-only repositories. Each method takes an open ``aiosqlite.Connection``;
transactions are owned by the services in ``elaina.services``.

- **chat_state_repo.py**: persona and pro mode per chat.
- **moderation_repo.py**: rules state, warning ledger, evaluation claims.
- **memory_repo.py**: conversation turns and context assembly.
"""
