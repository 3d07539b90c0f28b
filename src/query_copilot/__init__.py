"""Natural-language to SQL query processing with layered validation."""

__version__ = "0.1.0"
