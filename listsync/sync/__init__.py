"""
listsync.sync - Sync pipeline module

Field mapping, reconciliation and the job handler. Submodules are imported
directly (e.g. ``from listsync.sync.engine import SyncJobHandler``).
"""
