"""Logging, log buffer and crash marker helpers."""
