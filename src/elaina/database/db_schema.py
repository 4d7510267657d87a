"""
Database schema initialization.

Creates tables, indexes and triggers, and records the schema version.
"""

import aiosqlite

from elaina.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and updates the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables, indexes and triggers if they do not exist.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Persona and pro mode per chat
        await db.execute("""
            CREATE TABLE IF NOT EXISTS chat_state (
                chat_id TEXT PRIMARY KEY,
                persona TEXT NOT NULL DEFAULT 'elaina1',
                pro_mode INTEGER NOT NULL DEFAULT 0,
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # Moderation switch and rules per group
        await db.execute("""
            CREATE TABLE IF NOT EXISTS peraturan_state (
                group_id TEXT PRIMARY KEY,
                enabled INTEGER NOT NULL DEFAULT 0,
                rules_text TEXT NOT NULL DEFAULT '',
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # Warning ledger
        await db.execute("""
            CREATE TABLE IF NOT EXISTS warn_records (
                group_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
                last_reason TEXT NOT NULL DEFAULT '',
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                PRIMARY KEY (group_id, user_id)
            )
        """)

        # One row per message that has been claimed for evaluation
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_evaluations (
                message_id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL,
                evaluated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        # Conversation memory for the fallback responder
        await db.execute("""
            CREATE TABLE IF NOT EXISTS chat_memory (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                chat_id TEXT NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_warn_records_group ON warn_records(group_id, count DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_chat_memory_chat ON chat_memory(chat_id, id DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_evaluations_time ON moderation_evaluations(evaluated_at)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        """Keep ``updated_at`` current on rules changes."""
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_peraturan_state_timestamp
            AFTER UPDATE OF enabled, rules_text ON peraturan_state
            FOR EACH ROW
            BEGIN
                UPDATE peraturan_state SET updated_at = strftime('%s', 'now')
                WHERE group_id = NEW.group_id;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
