"""History projection services."""
