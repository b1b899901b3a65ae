"""Phone-number inventory and assignment service."""

__version__ = "0.1.0"
