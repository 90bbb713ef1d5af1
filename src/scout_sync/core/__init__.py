"""
Core plumbing shared by the queue and the supervisors.

Components:
- ports.py: Protocols for the store/backend collaborators and their value types
- events.py: named-event broadcast channel and event payloads
- periodic.py: cancellable periodic task handle
- state.py: AppRuntime (everything wired together)
"""
