"""Live-match player tracking: classification, parties and enrichment."""

__version__ = "0.1.0"
