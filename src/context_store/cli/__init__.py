"""Command line maintenance tools for the context store backend."""
