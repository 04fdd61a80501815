"""SessionGuard backend package."""
