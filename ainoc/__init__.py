"""Ainoc invoice and stock analytics assistant."""

__version__ = "1.0.0"
