"""Workflow composition engine threading data between commands through references."""

__version__ = "0.1.0"
