"""
holonguard - Role and classification based access control for holons,
relationships and events.

Denied looks exactly like absent.
"""

from holonguard.models import (
    AccessDecision,
    ClassificationLevel,
    Document,
    DocumentType,
    EffectiveDates,
    EntityKind,
    Event,
    Holon,
    Relationship,
    Role,
    UserContext,
)
from holonguard.document_registry import DocumentNotFoundError, DocumentRegistry
from holonguard.permissions import (
    DEFAULT_PERMISSIONS,
    Operation,
    PermissionConfigError,
    PermissionMatrix,
)
from holonguard.engine import AccessControlEngine, create_engine
from holonguard.audit import AuditLogger, AuditEvent, AuditEventType, create_audit_logger

__version__ = "0.1.0"
__all__ = [
    # Core models
    "ClassificationLevel",
    "Role",
    "UserContext",
    "Document",
    "DocumentType",
    "EffectiveDates",
    "EntityKind",
    "Holon",
    "Relationship",
    "Event",
    "AccessDecision",
    # Registry
    "DocumentRegistry",
    "DocumentNotFoundError",
    # Permissions
    "Operation",
    "PermissionMatrix",
    "PermissionConfigError",
    "DEFAULT_PERMISSIONS",
    # Engine
    "AccessControlEngine",
    "create_engine",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "create_audit_logger",
]
