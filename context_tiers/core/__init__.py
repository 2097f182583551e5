"""Shared console, logging and file helpers."""
