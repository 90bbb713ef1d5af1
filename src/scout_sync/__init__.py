"""
scout-sync: offline-first submission queue and shared polling supervisors
for robotics-competition scouting clients.
"""

__version__ = "0.1.0"
