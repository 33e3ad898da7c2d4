"""roomkey - credential and session service for multi-tenant room booking."""

__version__ = "0.1.0"
