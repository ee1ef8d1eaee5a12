"""
Scheduling subsystem.

Components:
- engine.py: spaced-repetition decisions, backlog sweep, review materialization
"""
