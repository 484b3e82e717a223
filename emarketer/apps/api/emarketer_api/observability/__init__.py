"""Structured security and sync events."""
