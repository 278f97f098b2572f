"""
channels — Delivery backends.

Each channel module exposes:
    send(notification, *, topic_prefix) → DeliveryAttempt

Channels are stateless functions. There is no retry; a failed attempt is
reported back to the dispatcher and left for a later resend.
"""
