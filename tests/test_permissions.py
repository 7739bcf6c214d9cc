"""Tests for holonguard.permissions"""

import json
import pytest

from holonguard.models import EntityKind, Role
from holonguard.permissions import (
    ALL_ROLES,
    CLEARANCE_CHECKED,
    DEFAULT_PERMISSIONS,
    ENTITY_OPERATION,
    Operation,
    PermissionConfigError,
    PermissionMatrix,
)


class TestDefaultTables:
    """Tests for the default permission and clearance tables."""

    def test_every_operation_configured(self):
        assert set(DEFAULT_PERMISSIONS) == set(Operation)

    def test_every_kind_has_operation_and_flag(self):
        assert set(ENTITY_OPERATION) == set(EntityKind)
        assert set(CLEARANCE_CHECKED) == set(EntityKind)

    def test_queries_open_to_all_roles(self):
        assert DEFAULT_PERMISSIONS[Operation.QUERY_HOLONS] == ALL_ROLES
        assert DEFAULT_PERMISSIONS[Operation.QUERY_RELATIONSHIPS] == ALL_ROLES

    def test_viewer_cannot_query_events(self):
        assert Role.VIEWER not in DEFAULT_PERMISSIONS[Operation.QUERY_EVENTS]
        assert Role.SCHEMA_MANAGER in DEFAULT_PERMISSIONS[Operation.QUERY_EVENTS]

    def test_submit_and_schema(self):
        assert DEFAULT_PERMISSIONS[Operation.SUBMIT_EVENTS] == {Role.ADMINISTRATOR, Role.OPERATOR}
        assert DEFAULT_PERMISSIONS[Operation.MODIFY_SCHEMA] == {
            Role.ADMINISTRATOR, Role.SCHEMA_MANAGER,
        }


class TestPermissionMatrix:
    """Tests for PermissionMatrix."""

    @pytest.fixture
    def matrix(self):
        return PermissionMatrix()

    def test_allows(self, matrix):
        assert matrix.allows({Role.OPERATOR}, Operation.SUBMIT_EVENTS)
        assert not matrix.allows({Role.ANALYST}, Operation.SUBMIT_EVENTS)
        assert matrix.allows({Role.ANALYST, Role.OPERATOR}, Operation.SUBMIT_EVENTS)

    def test_no_roles_denied(self, matrix):
        for operation in Operation:
            assert not matrix.allows(set(), operation)

    def test_operations_for(self, matrix):
        assert matrix.operations_for(Role.VIEWER) == {
            Operation.QUERY_HOLONS, Operation.QUERY_RELATIONSHIPS,
        }
        assert matrix.operations_for(Role.ADMINISTRATOR) == set(Operation)

    def test_with_role_returns_copy(self, matrix):
        updated = matrix.with_role(Role.VIEWER, [Operation.QUERY_EVENTS])

        assert updated.operations_for(Role.VIEWER) == {Operation.QUERY_EVENTS}
        assert matrix.operations_for(Role.VIEWER) == {
            Operation.QUERY_HOLONS, Operation.QUERY_RELATIONSHIPS,
        }
        # Other roles untouched
        assert updated.roles_for(Operation.SUBMIT_EVENTS) == matrix.roles_for(Operation.SUBMIT_EVENTS)

    def test_from_dict(self):
        matrix = PermissionMatrix.from_dict({
            "query_events": ["Administrator", "Operator"],
            "MODIFY_SCHEMA": ["Administrator"],
        })

        assert matrix.roles_for(Operation.QUERY_EVENTS) == {Role.ADMINISTRATOR, Role.OPERATOR}
        assert matrix.roles_for(Operation.MODIFY_SCHEMA) == {Role.ADMINISTRATOR}
        # Unlisted operations keep their defaults
        assert matrix.roles_for(Operation.SUBMIT_EVENTS) == DEFAULT_PERMISSIONS[Operation.SUBMIT_EVENTS]

    def test_from_dict_unknown_operation(self):
        with pytest.raises(PermissionConfigError):
            PermissionMatrix.from_dict({"delete_everything": ["Administrator"]})

    def test_from_dict_unknown_role(self):
        with pytest.raises(PermissionConfigError):
            PermissionMatrix.from_dict({"query_events": ["Janitor"]})

    def test_from_dict_string_roles(self):
        with pytest.raises(ValueError):
            PermissionMatrix.from_dict({"query_events": "Administrator"})

    def test_to_dict_round_trip(self, matrix):
        assert PermissionMatrix.from_dict(matrix.to_dict()) == matrix

    def test_from_json(self, tmp_path):
        path = tmp_path / "permissions.json"
        path.write_text(json.dumps({"submit_events": ["Administrator"]}))

        matrix = PermissionMatrix.from_json(path)
        assert matrix.roles_for(Operation.SUBMIT_EVENTS) == {Role.ADMINISTRATOR}

    def test_from_json_not_object(self, tmp_path):
        path = tmp_path / "permissions.json"
        path.write_text("[]")
        with pytest.raises(PermissionConfigError):
            PermissionMatrix.from_json(path)
