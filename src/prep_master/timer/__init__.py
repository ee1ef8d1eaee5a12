"""
Timer subsystem.

Components:
- engine.py: TimerEngine state machine (start/pause/resume/stop) + durable mirror
- ticker.py: display view and periodic refresh loop
"""
