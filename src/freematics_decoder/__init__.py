"""Decoder for the Freematics vehicle-tracker text protocol."""

__version__ = "0.1.0"
