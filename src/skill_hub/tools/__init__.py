"""Tool adapter catalogue and tool directory scanning."""
