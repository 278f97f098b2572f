"""
Users package — read-only view of residents and households.

Account and household management live in other services; this backend
only reads locations and roles to target crisis notifications.
"""
