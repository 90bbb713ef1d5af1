"""
Upload queue subsystem.

Components:
- models.py: data structures (QueueItem, ItemStatus, ItemKind, QueueStats)
- errors.py: structured failure codes and transient/permanent classification
- backoff.py: QueuePolicy and exponential backoff with jitter
- upload_queue.py: the durable, retrying queue itself
"""
