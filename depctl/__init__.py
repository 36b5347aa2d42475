"""depctl — declarative dependency installation."""

__version__ = "0.1.0"
