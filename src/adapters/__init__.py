"""Adapters binding the core ports to Telethon and SQLite."""
