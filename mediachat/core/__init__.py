"""Core infrastructure: configuration, logging, errors, database."""
