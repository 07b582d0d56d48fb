"""Static alias tables loaded once at startup."""
