"""Command line interface for the skill hub."""
