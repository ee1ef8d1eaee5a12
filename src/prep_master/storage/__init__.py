"""
Storage subsystem.

Components:
- snapshot.py: Snapshot model, wire codec and version validation
- local_store.py: SQLite-backed durable key-value slots (timer mirror, local snapshot)
"""
