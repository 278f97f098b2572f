"""FastAPI application: crisis events, change audit and notifications."""
