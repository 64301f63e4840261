"""Logging and text utilities."""
