"""Machine and cluster lifecycle."""
