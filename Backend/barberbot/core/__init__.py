"""
Core module - configuration, database and response formatting.
"""
from .config import get_settings
from .db import get_session, Base, engine, AsyncSessionLocal, create_tables
from .responses import (
    ErrorMessages,
    step_response,
    cancelled_response,
    error_response,
    notification_response,
    reminder_run_response,
    reminder_error_response,
)

__all__ = [
    # Config
    "get_settings",
    # Database
    "get_session",
    "Base",
    "engine",
    "AsyncSessionLocal",
    "create_tables",
    # Responses
    "ErrorMessages",
    "step_response",
    "cancelled_response",
    "error_response",
    "notification_response",
    "reminder_run_response",
    "reminder_error_response",
]
