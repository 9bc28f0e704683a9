"""Command line interface for object-cache."""
