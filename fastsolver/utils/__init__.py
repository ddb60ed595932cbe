"""Shared utilities (structured logging, device selection)."""
