"""End-to-end tests that build component libraries on disk."""
