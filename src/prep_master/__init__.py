"""
prep_master: offline-first study planner.

Subsystems:
- tasks/: Task model, in-memory TaskStore, CRUD helpers
- timer/: study-session timer (pause/resume, restart-safe mirror, display ticker)
- scheduling/: spaced-repetition scheduling, backlog sweep, review materialization
- storage/: snapshot codec and SQLite-backed local slots
- sync/: local/remote snapshot reconciliation
"""

__version__ = "0.1.0"
