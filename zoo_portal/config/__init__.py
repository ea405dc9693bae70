"""Environment-specific configuration."""
