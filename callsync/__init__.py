"""Call-log snapshot synchronization pipeline."""

__version__ = "0.1.0"
