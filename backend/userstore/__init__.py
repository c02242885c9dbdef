"""userstore: async MongoDB data-access layer for user records."""

__version__ = "0.1.0"
__author__ = "userstore Team"

__all__ = ["__version__", "__author__"]
