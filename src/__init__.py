"""mediaquote — media analysis pipeline and quotation exporter."""

from mediaquote.version import __version__

__all__ = ["__version__"]
