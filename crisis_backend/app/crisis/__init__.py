"""
crisis — Crisis event lifecycle.

Sub-modules:
    models        — events, change rows, scenario themes
    auditor       — field-level diffs between event states
    resolver      — which residents an event affects, and why
    lifecycle     — create / update / deactivate / queries
    repositories  — SQL access
    unit_of_work  — transaction + notification outbox
    pagination    — shared Page / PageRequest
    results       — Found / NotFound outcomes
    views         — read projections
"""
