"""reposcope: GitHub repository analysis with streamed progress."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("reposcope")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
