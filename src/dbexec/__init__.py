"""Run pre-approved SQL queries in a single transaction with dry-run previews."""

__version__ = "0.1.0"
