"""Shared helpers: structured logging, clock parsing and board timezone."""
