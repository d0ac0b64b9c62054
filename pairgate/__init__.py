"""pairgate - device pairing gateway."""

__version__ = "0.1.0"
__logo__ = "🔗"
