"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Subject, TaskStatus, RecallQuality)
- task_store.py: in-memory store, single source of truth for a session
- task_api.py: CRUD and completion helpers used by the rest of the app
"""
