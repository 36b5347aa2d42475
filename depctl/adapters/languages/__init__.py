"""Language handlers — pip, npm."""

from depctl.adapters.languages.node import NpmHandler
from depctl.adapters.languages.python import PipHandler

__all__ = ["NpmHandler", "PipHandler"]
