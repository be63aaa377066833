"""Scene Lab: versioned scene editing, building and content-addressed export."""

__version__ = "1.0.0"
