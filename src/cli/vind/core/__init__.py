"""Core vind functionality."""
