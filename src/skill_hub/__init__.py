"""Manage agent skills in one central repository and fan them out to tools."""

__version__ = "0.1.0"
