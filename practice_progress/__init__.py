"""Practice progress core: attempt ingestion, daily snapshots, achievements."""

__version__ = "0.1.0"
