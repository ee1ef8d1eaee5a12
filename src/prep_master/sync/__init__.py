"""
Sync subsystem.

Components:
- reconciler.py: pure latest-timestamp-wins decision between local and remote snapshots
- service.py: save/push and login-time sync against the injected remote port
- remote_store.py: JSON-per-user directory implementation of the remote port
"""
