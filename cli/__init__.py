"""Command line interface for layoutran."""
