"""Input contracts and boundary parsing."""
