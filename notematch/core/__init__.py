"""Shared value types, exceptions and time helpers for notematch."""
