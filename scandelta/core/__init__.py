"""Core infrastructure: configuration, logging, database, errors."""
