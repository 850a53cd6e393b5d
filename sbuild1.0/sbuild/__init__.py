"""sbuild - source-based single package build lifecycle."""

__version__ = "1.0.0"
