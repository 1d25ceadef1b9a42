"""Processing pipeline services."""
