"""Identity provider triggers."""
