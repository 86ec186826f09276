"""Shared database, logging, date and error helpers."""
