"""
Core data models for holonguard.

Access-control primitives:
- ClassificationLevel: Ordered classification of documents and users
- Role: Operation-permission roles held by a user
- UserContext: Authenticated user with roles and clearance
- Document: Authority document carrying a classification label
- Holon / Relationship / Event: Entities whose visibility is governed
- AccessDecision: Result of an access check
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional


class ClassificationLevel(IntEnum):
    """
    Totally ordered classification levels.

    Higher values indicate higher classification. A user may see an
    entity when their clearance dominates the entity's required level.
    """
    UNCLASSIFIED = 0
    CONFIDENTIAL = 1
    SECRET = 2
    TOP_SECRET = 3

    def __str__(self) -> str:
        return self.name

    def dominates(self, required: "ClassificationLevel") -> bool:
        """Check if this clearance is sufficient for the required level."""
        return self >= required

    @classmethod
    def parse(cls, text: Optional[str]) -> "ClassificationLevel":
        """
        Map a free-text classification label to a level.

        Matching is case-insensitive and by substring. The most specific
        label is tested first so "SECRET" never matches inside "TOP SECRET".
        Anything unrecognized is UNCLASSIFIED.
        """
        if not text:
            return cls.UNCLASSIFIED
        upper = text.upper()
        for marker, level in _LABEL_MARKERS:
            if marker in upper:
                return level
        return cls.UNCLASSIFIED


# Order matters: most specific first
_LABEL_MARKERS: tuple[tuple[str, ClassificationLevel], ...] = (
    ("TOP SECRET", ClassificationLevel.TOP_SECRET),
    ("TOPSECRET", ClassificationLevel.TOP_SECRET),
    ("TOP_SECRET", ClassificationLevel.TOP_SECRET),
    ("SECRET", ClassificationLevel.SECRET),
    ("CONFIDENTIAL", ClassificationLevel.CONFIDENTIAL),
)


class Role(Enum):
    """Roles a user may hold. Roles are not ordered."""
    ADMINISTRATOR = "Administrator"
    OPERATOR = "Operator"
    ANALYST = "Analyst"
    VIEWER = "Viewer"
    SCHEMA_MANAGER = "SchemaManager"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def lookup(cls, value: Any) -> Optional["Role"]:
        """Resolve a role from a Role, its value or its name; None if unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for role in cls:
                if value == role.value or value.upper() == role.name:
                    return role
        return None


class EntityKind(Enum):
    """The three kinds of governed entity."""
    HOLON = "holon"
    RELATIONSHIP = "relationship"
    EVENT = "event"


class DocumentType(Enum):
    """Kinds of authority document."""
    POLICY = "Policy"
    ORDER = "Order"
    PLAN = "Plan"
    SOP = "SOP"
    RECORD = "Record"
    INSTRUCTION = "Instruction"
    MANUAL = "Manual"
    CHARTER = "Charter"
    FRAMEWORK = "Framework"
    CONOPS = "CONOPS"
    OPLAN = "OPLAN"
    EXORD = "EXORD"


def _coerce_clearance(value: Any) -> ClassificationLevel:
    """Convert a clearance to a level; anything unrecognized is UNCLASSIFIED."""
    if isinstance(value, ClassificationLevel):
        return value
    if isinstance(value, str):
        return ClassificationLevel.parse(value)
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return ClassificationLevel(value)
        except ValueError:
            return ClassificationLevel.UNCLASSIFIED
    return ClassificationLevel.UNCLASSIFIED


@dataclass(frozen=True)
class UserContext:
    """
    An authenticated user as seen by the engine.

    Attributes:
        user_id: Unique identifier
        roles: Roles held by the user
        clearance_level: Highest classification the user may view

    Role names that are not recognized are dropped, so a context built
    from garbage roles is simply a deny-everything context. A single role
    may be given on its own. A missing or unrecognized clearance becomes
    UNCLASSIFIED.
    """
    user_id: str
    roles: frozenset = field(default_factory=frozenset)
    clearance_level: ClassificationLevel = ClassificationLevel.UNCLASSIFIED

    def __post_init__(self) -> None:
        roles = self.roles or ()
        if isinstance(roles, (str, Role)):
            roles = (roles,)
        resolved = frozenset(role for role in (Role.lookup(r) for r in roles) if role)
        object.__setattr__(self, "roles", resolved)

        object.__setattr__(self, "clearance_level", _coerce_clearance(self.clearance_level))

    def has_role(self, role: Role) -> bool:
        return role in self.roles


@dataclass
class EffectiveDates:
    """Period during which a document is in force. Open-ended if no end."""
    start: datetime
    end: Optional[datetime] = None

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= timestamp and (self.end is None or timestamp <= self.end)


@dataclass
class Document:
    """
    An authority document registered with the DocumentRegistry.

    Attributes:
        id: Registry-assigned identifier, never reused
        classification_metadata: Free-text label, e.g. "SECRET//NOFORN"
        title: Document title
        document_type: Kind of document
        version: Version string
        reference_numbers: External reference numbers (may repeat across documents)
        effective_dates: Period the document is in force
        created_by: Event that registered the document
        created_at: Registration time
        content: Optional body text
        supersedes: Documents this one replaces
        derived_from: Documents this one was derived from
    """
    id: str
    classification_metadata: str
    title: str
    document_type: DocumentType = DocumentType.RECORD
    version: str = "1"
    reference_numbers: list[str] = field(default_factory=list)
    effective_dates: Optional[EffectiveDates] = None
    created_by: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    content: Optional[str] = None
    supersedes: list[str] = field(default_factory=list)
    derived_from: list[str] = field(default_factory=list)

    @property
    def classification(self) -> ClassificationLevel:
        return ClassificationLevel.parse(self.classification_metadata)


@dataclass
class Holon:
    """
    A tracked organizational/operational object.

    `properties` is an opaque payload; the engine never reads it.
    """
    id: str
    type: str
    source_documents: list[str] = field(default_factory=list)
    status: str = "active"
    properties: dict[str, Any] = field(default_factory=dict)
    created_by: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    kind = EntityKind.HOLON


@dataclass
class Relationship:
    """A typed, directed link between two holons."""
    id: str
    type: str
    source_holon_id: str
    target_holon_id: str
    source_documents: list[str] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
    effective_start: datetime = field(default_factory=datetime.now)
    effective_end: Optional[datetime] = None
    source_system: str = ""
    authority_level: str = "authoritative"
    created_by: str = ""

    kind = EntityKind.RELATIONSHIP


@dataclass
class Event:
    """An entry in the append-only event log."""
    id: str
    type: str
    actor: str
    subjects: list[str] = field(default_factory=list)
    occurred_at: datetime = field(default_factory=datetime.now)
    recorded_at: datetime = field(default_factory=datetime.now)
    source_document: Optional[str] = None
    source_system: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    kind = EntityKind.EVENT

    @property
    def source_documents(self) -> list[str]:
        """Events carry at most one source document."""
        return [self.source_document] if self.source_document else []


@dataclass
class AccessDecision:
    """
    Result of an access check.

    Attributes:
        allowed: Whether the operation is permitted
        reason: Why access was denied; None when allowed. For audit only,
            never shown to the denied party.
        required_level: Clearance the entity required, when one was computed
    """
    allowed: bool
    reason: Optional[str] = None
    required_level: Optional[ClassificationLevel] = None

    def __bool__(self) -> bool:
        return self.allowed

    def __str__(self) -> str:
        if self.allowed:
            return "AccessDecision(ALLOWED)"
        return f"AccessDecision(DENIED: {self.reason})"

    @classmethod
    def allow(cls, required_level: Optional[ClassificationLevel] = None) -> "AccessDecision":
        return cls(allowed=True, required_level=required_level)

    @classmethod
    def deny(
        cls,
        reason: str,
        required_level: Optional[ClassificationLevel] = None,
    ) -> "AccessDecision":
        return cls(allowed=False, reason=reason, required_level=required_level)
