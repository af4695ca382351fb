"""Authentication route."""
