"""Core infrastructure: config, database, identity, logging, middleware, exceptions."""

from app.core.config import Settings, get_settings
from app.core.database import AppContext, Base, create_context, get_app_settings, get_db
from app.core.identity import Principal, Role, get_principal, require_roles
from app.core.logging import get_logger, request_id_ctx

__all__ = [
    "AppContext",
    "Base",
    "Principal",
    "Role",
    "Settings",
    "create_context",
    "get_app_settings",
    "get_db",
    "get_logger",
    "get_principal",
    "get_settings",
    "request_id_ctx",
    "require_roles",
]
