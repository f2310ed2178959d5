"""Domain layer protocols."""
