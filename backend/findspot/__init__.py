"""Location-tagged photo capture backend for metal detecting finds."""

__version__ = "0.1.0"
