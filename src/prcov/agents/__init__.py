"""Coverage correlation, scoring and publishing agents."""
