"""Regraft: upgrade generated projects by merging regenerated output through git."""

__version__ = "0.1.0"
