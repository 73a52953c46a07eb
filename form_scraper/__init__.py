"""Government form retrieval and schema generation via the Extend API."""

__version__ = "0.1.0"
