"""
notifications — Crisis notification text, persistence and push delivery.

Sub-modules:
    channels/    — Push transport backends
    dispatcher   — Persists notifications and pushes them, one recipient at a time
    messages     — Localised message templates (new event / update / deactivation)
    models       — Notification table, closed tag enums, outbox items
"""
