"""Column types, schemas, storage keys, batch encoding, column sets and configuration for a time-series event store."""

__version__ = "0.1.0"