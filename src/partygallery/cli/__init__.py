"""Command line tasks (invoke)."""
