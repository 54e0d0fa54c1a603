"""Business logic for authentication, sessions and user administration."""
