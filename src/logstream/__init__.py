"""logstream: live application log streaming for operators."""

__version__ = "0.1.0"
