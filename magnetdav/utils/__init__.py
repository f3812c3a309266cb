"""Shared utilities: errors, logging and task supervision."""
