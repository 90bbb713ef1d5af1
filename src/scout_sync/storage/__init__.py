"""Durable key-value stores (SQLite on disk, in-memory for demos)."""
