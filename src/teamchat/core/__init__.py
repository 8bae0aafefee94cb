"""Protocol constants and environment-driven settings."""
