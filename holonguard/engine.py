"""
Access Control Engine - Role and clearance enforcement.

Combines two independent checks:
- Role gate: the user holds a role permitted to perform the operation
- Clearance gate: the user's clearance dominates the highest
  classification among the entity's source documents

Denial is an ordinary return value. Filtering removes denied items
silently: it never raises, logs or audits anything about what it removed,
so a denied entity is indistinguishable from one that does not exist.
"""

import logging
from collections.abc import Iterable
from typing import Optional, Protocol, TypeVar, Union

from holonguard.audit import AuditLogger
from holonguard.document_registry import DocumentRegistry
from holonguard.models import (
    AccessDecision,
    ClassificationLevel,
    EntityKind,
    Event,
    Holon,
    Relationship,
    Role,
    UserContext,
)
from holonguard.permissions import (
    CLEARANCE_BYPASS_ROLES,
    CLEARANCE_CHECKED,
    ENTITY_OPERATION,
    Operation,
    PermissionMatrix,
)


logger = logging.getLogger(__name__)

Entity = Union[Holon, Relationship, Event]
E = TypeVar("E", Holon, Relationship, Event)


class GovernedEntity(Protocol):
    """Anything carrying a kind and source document references."""
    kind: EntityKind

    @property
    def source_documents(self) -> list[str]:
        ...


_ROLE_DENIAL = {
    Operation.QUERY_HOLONS: "User does not have permission to query holons",
    Operation.QUERY_RELATIONSHIPS: "User does not have permission to query relationships",
    Operation.QUERY_EVENTS: "User does not have permission to query events",
    Operation.SUBMIT_EVENTS: "User does not have permission to submit events",
    Operation.MODIFY_SCHEMA: "User does not have permission to modify schema",
}


class AccessControlEngine:
    """
    Decides what a user may see and do.

    The engine holds no per-user state; every decision is a function of
    the user, the entity and the registry contents at call time.

    Example:
        registry = DocumentRegistry()
        doc = registry.register_document(
            {"title": "OPORD", "classification_metadata": "SECRET"}, "evt-1"
        )
        engine = AccessControlEngine(registry)

        analyst = UserContext("u1", {Role.ANALYST}, ClassificationLevel.UNCLASSIFIED)
        holon = Holon("h1", "Mission", source_documents=[doc.id])
        engine.can_access_holon(analyst, holon)
        # AccessDecision(allowed=False, reason="Insufficient clearance level ...")
    """

    def __init__(
        self,
        document_registry: DocumentRegistry,
        permissions: Optional[PermissionMatrix] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            document_registry: Registry used to resolve source documents
            permissions: Operation/role matrix (default: DEFAULT_PERMISSIONS)
            audit: Optional audit logger for single decisions
        """
        self.document_registry = document_registry
        self.permissions = permissions or PermissionMatrix()
        self.audit = audit

    def required_level(self, entity: GovernedEntity) -> ClassificationLevel:
        """
        Get the clearance needed to see an entity.

        Only linked documents count. Fields the entity declares about
        itself are never trusted.
        """
        return self.document_registry.resolve_many(entity.source_documents)

    def _check_operation(self, user: UserContext, operation: Operation) -> AccessDecision:
        if not self.permissions.allows(user.roles, operation):
            return AccessDecision.deny(_ROLE_DENIAL[operation])
        return AccessDecision.allow()

    def _decide(self, user: UserContext, entity: GovernedEntity) -> AccessDecision:
        decision = self._check_operation(user, ENTITY_OPERATION[entity.kind])
        if not decision.allowed:
            return decision

        if not CLEARANCE_CHECKED[entity.kind]:
            return decision

        required = self.required_level(entity)
        if user.roles & CLEARANCE_BYPASS_ROLES:
            return AccessDecision.allow(required)
        if not user.clearance_level.dominates(required):
            return AccessDecision.deny(
                f"Insufficient clearance level: requires {required.name}",
                required,
            )
        return AccessDecision.allow(required)

    def _audited(
        self,
        user: UserContext,
        operation: Operation,
        decision: AccessDecision,
        entity: Optional[GovernedEntity] = None,
    ) -> AccessDecision:
        if self.audit is not None:
            self.audit.log_access_decision(user, operation.value, decision, entity)
        return decision

    def can_access(self, user: UserContext, entity: Entity) -> AccessDecision:
        """Check access to any kind of entity."""
        return self._audited(
            user, ENTITY_OPERATION[entity.kind], self._decide(user, entity), entity
        )

    def can_access_holon(self, user: UserContext, holon: Holon) -> AccessDecision:
        """
        Check if a user can see a holon.

        Any recognized role passes the role gate. The user's clearance
        must dominate the holon's required level unless they are an
        Administrator.

        Args:
            user: The requesting user
            holon: The holon to check

        Returns:
            AccessDecision; denial reasons from the clearance gate
            mention "clearance"
        """
        return self.can_access(user, holon)

    def can_access_relationship(
        self, user: UserContext, relationship: Relationship
    ) -> AccessDecision:
        """Check if a user can see a relationship. Same rules as holons."""
        return self.can_access(user, relationship)

    def can_access_event(self, user: UserContext, event: Event) -> AccessDecision:
        """
        Check if a user can see an event.

        Viewers never can. Other roles are subject to the clearance gate
        on the event's source document, if it has one.
        """
        return self.can_access(user, event)

    def can_submit_event(self, user: UserContext) -> AccessDecision:
        """Check if a user may submit events. No clearance check."""
        operation = Operation.SUBMIT_EVENTS
        return self._audited(user, operation, self._check_operation(user, operation))

    def can_modify_schema(self, user: UserContext) -> AccessDecision:
        """Check if a user may modify the schema. No clearance check."""
        operation = Operation.MODIFY_SCHEMA
        return self._audited(user, operation, self._check_operation(user, operation))

    def _filter(self, user: UserContext, items: Iterable[E]) -> list[E]:
        # Not audited: the trail must not reveal what was removed
        return [item for item in items if self._decide(user, item).allowed]

    def filter_holons(self, user: UserContext, holons: Iterable[Holon]) -> list[Holon]:
        """
        Filter holons to those the user may see.

        Order is preserved and items are returned unmodified. Nothing
        about the removed holons is reported.
        """
        return self._filter(user, holons)

    def filter_relationships(
        self, user: UserContext, relationships: Iterable[Relationship]
    ) -> list[Relationship]:
        """Filter relationships to those the user may see."""
        return self._filter(user, relationships)

    def filter_events(self, user: UserContext, events: Iterable[Event]) -> list[Event]:
        """Filter events to those the user may see."""
        return self._filter(user, events)

    def filter_entities(self, user: UserContext, entities: Iterable[Entity]) -> list[Entity]:
        """Filter a mixed collection of holons, relationships and events."""
        return self._filter(user, entities)

    def get_role_permissions(self, role: Role) -> frozenset[Operation]:
        """Get the operations a role may perform."""
        return self.permissions.operations_for(role)

    def set_role_permissions(self, role: Role, operations: Iterable[Operation]) -> None:
        """
        Replace the operations a role may perform.

        The matrix is swapped as a whole, so concurrent decisions see
        either the old or the new grants.
        """
        operations = frozenset(operations)
        old = self.permissions.operations_for(role)
        self.permissions = self.permissions.with_role(role, operations)

        logger.info(
            "Permissions for %s changed: %s -> %s",
            role.value,
            sorted(op.value for op in old),
            sorted(op.value for op in operations),
        )
        if self.audit is not None:
            self.audit.log_permissions_changed(
                role.value,
                [op.value for op in old],
                [op.value for op in operations],
            )


def create_engine(
    document_registry: Optional[DocumentRegistry] = None,
    permissions: Optional[PermissionMatrix] = None,
    audit: Optional[AuditLogger] = None,
) -> AccessControlEngine:
    """
    Factory function to create a configured AccessControlEngine.

    Args:
        document_registry: Registry to resolve documents against
            (default: a new empty registry)
        permissions: Permission matrix (default: DEFAULT_PERMISSIONS)
        audit: Optional audit logger

    Returns:
        Configured AccessControlEngine

    Example:
        engine = create_engine(
            permissions=PermissionMatrix.from_json("permissions.json"),
            audit=create_audit_logger("file", "logs/access.jsonl"),
        )
    """
    if document_registry is None:
        document_registry = DocumentRegistry(audit=audit)
    return AccessControlEngine(document_registry, permissions=permissions, audit=audit)
