"""Sarnies loyalty QR and points lifecycle service."""

__version__ = "0.1.0"
