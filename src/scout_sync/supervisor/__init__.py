"""
Reference-counted polling supervisors.

Components:
- base.py: PollingSupervisor (refcount, single timer, diff-then-broadcast)
- connection.py: backend reachability (ConnectionState)
- competition.py: active competition configuration (ConfigState)
- schema.py: database schema version compatibility
"""
