"""
Property-based tests for access-control invariants.

Uses Hypothesis to generate users, documents and collections and checks
that decisions and filters keep their guarantees for all of them.
"""

import pytest
from hypothesis import given, settings, strategies as st

from holonguard.document_registry import DocumentRegistry
from holonguard.engine import AccessControlEngine
from holonguard.models import ClassificationLevel, Event, Holon, Relationship, Role, UserContext


LABELS = {
    ClassificationLevel.UNCLASSIFIED: "UNCLASSIFIED",
    ClassificationLevel.CONFIDENTIAL: "CONFIDENTIAL//REL",
    ClassificationLevel.SECRET: "Secret",
    ClassificationLevel.TOP_SECRET: "top secret//sci",
}

level_strategy = st.sampled_from(list(ClassificationLevel))
roles_strategy = st.frozensets(st.sampled_from(list(Role)), max_size=3)
non_admin_roles_strategy = st.frozensets(
    st.sampled_from([r for r in Role if r is not Role.ADMINISTRATOR]), min_size=1, max_size=3
)
# Opaque payloads the engine must ignore
properties_strategy = st.dictionaries(
    st.text(min_size=1, max_size=10),
    st.one_of(st.text(max_size=20), st.integers(), st.booleans()),
    max_size=4,
)


def build_engine():
    """Create an engine whose registry holds one document per level."""
    registry = DocumentRegistry()
    docs = {
        level: registry.register_document(
            {"title": label, "classification_metadata": label}, "evt-0"
        ).id
        for level, label in LABELS.items()
    }
    return AccessControlEngine(registry), docs


ENGINE, DOCS = build_engine()

doc_refs_strategy = st.lists(
    st.one_of(
        st.sampled_from(list(DOCS.values())),
        st.text(min_size=1, max_size=8),  # unresolved references
    ),
    max_size=4,
)


@st.composite
def holons(draw):
    return Holon(
        id=draw(st.uuids()).hex,
        type=draw(st.sampled_from(["Person", "Position", "Mission", "Task"])),
        source_documents=draw(doc_refs_strategy),
        status=draw(st.sampled_from(["active", "inactive"])),
        properties=draw(properties_strategy),
    )


@st.composite
def relationships(draw):
    return Relationship(
        id=draw(st.uuids()).hex,
        type="MEMBER_OF",
        source_holon_id="a",
        target_holon_id="b",
        source_documents=draw(doc_refs_strategy),
    )


@st.composite
def events(draw):
    return Event(
        id=draw(st.uuids()).hex,
        type="AssignmentStarted",
        actor="p1",
        source_document=draw(st.one_of(st.none(), st.sampled_from(list(DOCS.values())))),
    )


@st.composite
def users(draw):
    return UserContext(
        user_id="u",
        roles=draw(roles_strategy),
        clearance_level=draw(level_strategy),
    )


class TestRegistryProperties:

    @given(st.lists(st.sampled_from(list(LABELS.values())), min_size=1, max_size=30))
    @settings(max_examples=30)
    def test_ids_pairwise_distinct(self, labels):
        registry = DocumentRegistry()
        ids = [
            registry.register_document({"title": "t", "classification_metadata": l}, "evt").id
            for l in labels
        ]
        assert len(set(ids)) == len(ids)


class TestClearanceProperties:

    @given(level_strategy, level_strategy, non_admin_roles_strategy)
    def test_hierarchy(self, clearance, classification, roles):
        """Access to holons is granted iff clearance >= classification."""
        user = UserContext("u", roles, clearance)
        holon = Holon("h", "Mission", source_documents=[DOCS[classification]])
        assert ENGINE.can_access_holon(user, holon).allowed == (clearance >= classification)

    @given(level_strategy, level_strategy, level_strategy, non_admin_roles_strategy)
    def test_monotone_in_required_level(self, clearance, lower, higher, roles):
        """Denied on clearance at one level means denied at every higher level."""
        if lower > higher:
            lower, higher = higher, lower
        user = UserContext("u", roles, clearance)
        e1 = Holon("h1", "Mission", source_documents=[DOCS[lower]])
        e2 = Holon("h2", "Mission", source_documents=[DOCS[higher]])

        if not ENGINE.can_access_holon(user, e1).allowed:
            assert not ENGINE.can_access_holon(user, e2).allowed

    @given(level_strategy, holons())
    def test_administrator_bypass(self, clearance, holon):
        admin = UserContext("admin", {Role.ADMINISTRATOR}, clearance)
        assert ENGINE.can_access_holon(admin, holon).allowed

    @given(users(), holons())
    def test_properties_never_consulted(self, user, holon):
        """Changing the opaque payload never changes a decision."""
        before = ENGINE.can_access_holon(user, holon).allowed
        holon.properties = {"classificationMetadata": "TOP SECRET"}
        assert ENGINE.can_access_holon(user, holon).allowed == before
        holon.properties = {"classificationMetadata": "UNCLASSIFIED"}
        assert ENGINE.can_access_holon(user, holon).allowed == before


class TestFilterProperties:

    @given(users(), st.lists(holons(), max_size=20))
    def test_filter_holons_exact(self, user, items):
        result = ENGINE.filter_holons(user, items)

        assert result == [h for h in items if ENGINE.can_access_holon(user, h).allowed]
        for holon in items:
            if not any(holon is r for r in result):
                assert not ENGINE.can_access_holon(user, holon).allowed

    @pytest.mark.parametrize("strategy,method", [
        (holons(), "filter_holons"),
        (relationships(), "filter_relationships"),
        (events(), "filter_events"),
    ])
    def test_information_hiding(self, strategy, method):
        @given(users(), st.lists(strategy, max_size=20, unique_by=lambda item: item.id))
        def check(user, items):
            result = getattr(ENGINE, method)(user, items)
            input_ids = [item.id for item in items]

            assert len(result) <= len(items)
            assert all(item.id in input_ids for item in result)
            # Order preserved: result is a sub-sequence of the input
            positions = [input_ids.index(item.id) for item in result]
            assert positions == sorted(positions)

        check()

    @given(users(), st.lists(holons(), max_size=10))
    def test_filter_is_pure(self, user, items):
        snapshot = [(h.id, h.status, dict(h.properties), list(h.source_documents)) for h in items]
        ENGINE.filter_holons(user, items)
        assert snapshot == [
            (h.id, h.status, dict(h.properties), list(h.source_documents)) for h in items
        ]
