"""wacli - command-line messaging client with a single-owner sync daemon."""

__version__ = "0.1.0"
