"""Conflict parsing, classification, suggestion and patching."""
