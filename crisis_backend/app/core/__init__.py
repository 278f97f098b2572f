"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON / console logging
    middleware      — request IDs & access log
    errors          — exception hierarchy & handlers
    health          — health check aggregation
    database        — SQLAlchemy engine, sessions, ORM base
"""
