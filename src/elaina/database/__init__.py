"""
Database package for Elaina.

- **db_connection.py**: `ConnectionManager`, one long-lived aiosqlite
  connection with serialised write transactions (`db_connection` singleton).
- **db_schema.py**: `SchemaManager`, table/index/trigger creation.
- **database.py**: `Database`, startup/shutdown and maintenance.
"""
