"""archguard - architecture boundary validator."""

__version__ = "0.4.0"
