"""
Core utilities and configuration for the event ingestion service.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory construction
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import get_settings
    from core.database import create_engine, create_session_factory
    from core.exceptions import TransientError, CredentialExpiredError
    from core.logging import setup_logging

Example:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        pass
"""

__all__ = [
    "Settings",
    "get_settings",
    "create_engine",
    "create_session_factory",
    "setup_logging",
    # Exceptions
    "IngestionError",
    "ConfigurationError",
    "ExtractionError",
    "AuthError",
    "CredentialExpiredError",
    "CursorExpiredError",
    "RateLimitError",
    "TransientError",
    "UnknownError",
    "TransformationError",
    "ValidationError",
    "LoadError",
    "WriteError",
    "CheckpointError",
    "RetryableError",
    "NonRetryableError",
]
