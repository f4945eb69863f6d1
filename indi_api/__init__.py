"""INDI digital business cards backend."""
