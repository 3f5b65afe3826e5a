"""Bundle project files into a single Markdown document and restore them."""

__version__ = "0.1.0"
