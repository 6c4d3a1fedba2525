"""Template storage."""
