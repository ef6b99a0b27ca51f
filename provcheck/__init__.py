"""Provider directory validation and confidence scoring."""

__version__ = "0.1.0"
