"""Community website: accounts, sessions and stories."""

__version__ = "0.1.0"
