"""Connectors: user-facing front ends (console REPL and its prompt collaborators)."""
