"""todovex: auth adapter over a managed identity store and AI task suggestions."""

__version__ = "0.1.0"
