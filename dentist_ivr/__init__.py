"""Multilingual phone-booking assistant for a dental clinic."""

__version__ = "0.3.0"
