"""Session authentication services."""
