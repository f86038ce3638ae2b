"""Transformer acceptance-test sheet: state, calculations, persistence and export."""

__version__ = "0.1.0"
