"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON / console logging
    errors          — exception hierarchy & handlers
    middleware      — request ids and access logging
    health          — health check aggregation
"""
