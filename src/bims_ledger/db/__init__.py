"""SQLite block store."""
