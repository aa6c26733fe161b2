"""Version information for cloud-mutex."""

__version__ = "0.3.0"
