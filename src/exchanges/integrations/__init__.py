"""Exchange-specific integrations."""
