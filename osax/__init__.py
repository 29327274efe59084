"""Metadata-first object filesystem over an in-memory exFAT volume."""

__version__ = "0.1.0"