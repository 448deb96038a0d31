"""BigQuery SQL language server."""

__version__ = "0.1.0"
