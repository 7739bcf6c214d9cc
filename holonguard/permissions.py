"""
Permission tables for holonguard.

Two declarative tables drive every decision:
- an (Operation x Role) permission matrix
- a per-entity-kind flag saying whether the clearance gate applies

Decision functions in the engine only compose lookups in these tables.
"""

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Optional

from holonguard.models import EntityKind, Role


class PermissionConfigError(ValueError):
    """Raised when a permission configuration names unknown operations or roles."""


class Operation(Enum):
    """Operations a user can be permitted to perform."""
    QUERY_HOLONS = "query_holons"
    QUERY_RELATIONSHIPS = "query_relationships"
    QUERY_EVENTS = "query_events"
    SUBMIT_EVENTS = "submit_events"
    MODIFY_SCHEMA = "modify_schema"

    def __str__(self) -> str:
        return self.value


ALL_ROLES: frozenset[Role] = frozenset(Role)

DEFAULT_PERMISSIONS: dict[Operation, frozenset[Role]] = {
    # Any recognized role may query holons and relationships
    Operation.QUERY_HOLONS: ALL_ROLES,
    Operation.QUERY_RELATIONSHIPS: ALL_ROLES,
    Operation.QUERY_EVENTS: frozenset({
        Role.ADMINISTRATOR,
        Role.OPERATOR,
        Role.ANALYST,
        Role.SCHEMA_MANAGER,
    }),
    Operation.SUBMIT_EVENTS: frozenset({Role.ADMINISTRATOR, Role.OPERATOR}),
    Operation.MODIFY_SCHEMA: frozenset({Role.ADMINISTRATOR, Role.SCHEMA_MANAGER}),
}

# Operation that governs reading each entity kind
ENTITY_OPERATION: dict[EntityKind, Operation] = {
    EntityKind.HOLON: Operation.QUERY_HOLONS,
    EntityKind.RELATIONSHIP: Operation.QUERY_RELATIONSHIPS,
    EntityKind.EVENT: Operation.QUERY_EVENTS,
}

CLEARANCE_CHECKED: dict[EntityKind, bool] = {
    EntityKind.HOLON: True,
    EntityKind.RELATIONSHIP: True,
    EntityKind.EVENT: True,
}

CLEARANCE_BYPASS_ROLES: frozenset[Role] = frozenset({Role.ADMINISTRATOR})


def _parse_operation(name: str) -> Operation:
    if isinstance(name, Operation):
        return name
    for operation in Operation:
        if name in (operation.value, operation.name):
            return operation
    raise PermissionConfigError(f"Unknown operation: {name}")


def _parse_roles(names: Iterable[str]) -> frozenset[Role]:
    roles = set()
    for name in names:
        role = Role.lookup(name)
        if role is None:
            raise PermissionConfigError(f"Unknown role: {name}")
        roles.add(role)
    return frozenset(roles)


class PermissionMatrix:
    """
    Mapping of each Operation to the roles allowed to perform it.

    Instances are never changed in place; `with_role` returns a new
    matrix, so a matrix can be shared between threads.

    Example:
        matrix = PermissionMatrix()
        matrix.allows({Role.ANALYST}, Operation.SUBMIT_EVENTS)
        # False

        matrix = PermissionMatrix.from_dict({
            "query_events": ["Administrator", "Operator"],
        })
    """

    def __init__(self, grants: Optional[Mapping[Operation, Iterable[Role]]] = None) -> None:
        source = DEFAULT_PERMISSIONS if grants is None else grants
        self._grants: dict[Operation, frozenset[Role]] = {
            operation: frozenset(source.get(operation, ())) for operation in Operation
        }

    def allows(self, roles: Iterable[Role], operation: Operation) -> bool:
        """Check if any of the roles may perform the operation."""
        granted = self._grants[operation]
        return any(role in granted for role in roles)

    def roles_for(self, operation: Operation) -> frozenset[Role]:
        return self._grants[operation]

    def operations_for(self, role: Role) -> frozenset[Operation]:
        """Get every operation a role may perform."""
        return frozenset(op for op, roles in self._grants.items() if role in roles)

    def with_role(self, role: Role, operations: Iterable[Operation]) -> "PermissionMatrix":
        """Return a copy in which `role` holds exactly `operations`."""
        wanted = set(operations)
        grants = {}
        for operation, roles in self._grants.items():
            if operation in wanted:
                grants[operation] = roles | {role}
            else:
                grants[operation] = roles - {role}
        return PermissionMatrix(grants)

    @classmethod
    def from_dict(cls, data: Mapping[str, Iterable[str]]) -> "PermissionMatrix":
        """
        Build a matrix from operation names mapped to role names.

        Operations missing from `data` keep their default grants.

        Raises:
            PermissionConfigError: If an operation or role is unknown
        """
        grants = dict(DEFAULT_PERMISSIONS)
        for name, roles in data.items():
            if isinstance(roles, str):
                raise PermissionConfigError(f"Roles for {name} must be a list")
            grants[_parse_operation(name)] = _parse_roles(roles)
        return cls(grants)

    @classmethod
    def from_json(cls, path: str | Path) -> "PermissionMatrix":
        """Load a matrix from a JSON file in the `from_dict` format."""
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise PermissionConfigError("Permission file must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, list[str]]:
        """Serialize for review or export."""
        return {
            operation.value: sorted(role.value for role in roles)
            for operation, roles in self._grants.items()
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PermissionMatrix):
            return NotImplemented
        return self._grants == other._grants

    def __repr__(self) -> str:
        return f"PermissionMatrix({self.to_dict()})"
