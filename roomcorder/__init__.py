"""roomcorder: multi-participant voice room recorder."""

__version__ = "0.1.0"
