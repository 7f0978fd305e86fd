"""
listsync - Multi-source contact list synchronization.

Pulls records from Airtable, Google Sheets, Supabase and Firebase Auth and
reconciles them into brand-scoped contact lists.
"""

__version__ = "0.1.0"
