"""Core: ports, shared state, clock helpers and the error taxonomy."""
