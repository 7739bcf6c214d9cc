"""
Document Registry - Authority documents and their classification labels.

Every entity traces its authority back to one or more registered documents.
The classification label stored on those documents is the only thing that
decides how much clearance an entity requires.
"""

import logging
import threading
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from holonguard.models import ClassificationLevel, Document, DocumentType, EffectiveDates

if TYPE_CHECKING:
    from holonguard.audit import AuditLogger


logger = logging.getLogger(__name__)


class DocumentNotFoundError(KeyError):
    """Raised when a registry mutation names a document that was never registered."""

    def __init__(self, document_id: str) -> None:
        super().__init__(document_id)
        self.document_id = document_id

    def __str__(self) -> str:
        return f"Document {self.document_id} not found"


# Accepted spellings for registration properties
_PROPERTY_ALIASES = {
    "classificationMetadata": "classification_metadata",
    "documentType": "document_type",
    "referenceNumbers": "reference_numbers",
    "effectiveDates": "effective_dates",
    "derivedFrom": "derived_from",
}


class DocumentRegistry:
    """
    In-memory registry of authority documents.

    Indexes documents by:
    - ID: for classification lookups
    - Document type: for type queries
    - Supersession: which documents replace which
    - Linkage: holon types and constraints a document defines

    Writes are serialized by a lock and publish a document with a single
    dict assignment, so readers see either the old or the new state.

    Example:
        registry = DocumentRegistry()
        doc = registry.register_document(
            {"title": "OPORD 24-01", "classification_metadata": "SECRET"},
            created_by="evt-1",
        )
        registry.resolve_classification(doc.id)
        # Returns ClassificationLevel.SECRET
    """

    def __init__(self, audit: Optional["AuditLogger"] = None) -> None:
        self._documents: dict[str, Document] = {}
        self._by_type: dict[DocumentType, list[str]] = {t: [] for t in DocumentType}
        self._supersessions: dict[str, list[str]] = {}
        self._holon_type_links: dict[str, set[str]] = {}
        self._constraint_links: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self._audit = audit

    @staticmethod
    def _generate_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _normalize(properties: Mapping[str, Any]) -> dict[str, Any]:
        return {_PROPERTY_ALIASES.get(k, k): v for k, v in properties.items()}

    @staticmethod
    def _effective_dates(value: Any) -> Optional[EffectiveDates]:
        if value is None or isinstance(value, EffectiveDates):
            return value
        return EffectiveDates(start=value["start"], end=value.get("end"))

    def register_document(self, properties: Mapping[str, Any], created_by: str) -> Document:
        """
        Register a new authority document.

        Args:
            properties: Document properties. `title` and
                `classification_metadata` are required; `document_type`,
                `version`, `reference_numbers`, `effective_dates`,
                `content`, `supersedes` and `derived_from` are optional.
            created_by: ID of the event that created this document

        Returns:
            The stored document with its newly assigned ID
        """
        props = self._normalize(properties)
        if "title" not in props:
            raise ValueError("title is required")
        if "classification_metadata" not in props:
            raise ValueError("classification_metadata is required")

        document_type = props.get("document_type", DocumentType.RECORD)
        if not isinstance(document_type, DocumentType):
            document_type = DocumentType(document_type)

        with self._lock:
            document_id = self._generate_id()
            while document_id in self._documents:
                document_id = self._generate_id()

            document = Document(
                id=document_id,
                classification_metadata=props["classification_metadata"] or "",
                title=props["title"],
                document_type=document_type,
                version=str(props.get("version", "1")),
                reference_numbers=list(props.get("reference_numbers") or []),
                effective_dates=self._effective_dates(props.get("effective_dates")),
                created_by=created_by,
                content=props.get("content"),
                supersedes=list(props.get("supersedes") or []),
                derived_from=list(props.get("derived_from") or []),
            )

            self._holon_type_links[document_id] = set()
            self._constraint_links[document_id] = set()
            if document.supersedes:
                self._supersessions[document_id] = list(document.supersedes)
            self._by_type[document_type].append(document_id)
            self._documents[document_id] = document

        logger.debug("Registered document %s (%s)", document_id, document_type.value)
        if self._audit:
            self._audit.log_document_registered(document, created_by)
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        """Get a document by ID."""
        return self._documents.get(document_id)

    def resolve_classification(self, document_id: Optional[str]) -> ClassificationLevel:
        """
        Resolve a document ID to its classification level.

        Unknown IDs resolve to UNCLASSIFIED rather than raising, so a
        broken reference can neither crash the caller nor reveal anything.
        """
        if not document_id:
            return ClassificationLevel.UNCLASSIFIED
        document = self._documents.get(document_id)
        if document is None:
            return ClassificationLevel.UNCLASSIFIED
        return ClassificationLevel.parse(document.classification_metadata)

    def resolve_many(self, document_ids: Iterable[str]) -> ClassificationLevel:
        """Get the highest classification among the given documents."""
        return max(
            (self.resolve_classification(d) for d in document_ids),
            default=ClassificationLevel.UNCLASSIFIED,
        )

    def get_documents_by_type(self, document_type: DocumentType) -> list[Document]:
        """Get all documents of a type, in registration order."""
        ids = list(self._by_type.get(document_type, []))
        return [self._documents[d] for d in ids if d in self._documents]

    def get_documents_in_force(self, timestamp: datetime) -> list[Document]:
        """Get documents whose effective dates cover the timestamp."""
        return [
            doc for doc in list(self._documents.values())
            if doc.effective_dates is not None and doc.effective_dates.contains(timestamp)
        ]

    def _require(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def supersede(self, new_document_id: str, old_document_id: str) -> None:
        """Record that one document supersedes another. Both must exist."""
        with self._lock:
            new_doc = self._require(new_document_id)
            self._require(old_document_id)

            if old_document_id not in new_doc.supersedes:
                new_doc.supersedes.append(old_document_id)
            chain = self._supersessions.setdefault(new_document_id, [])
            if old_document_id not in chain:
                chain.append(old_document_id)

    def get_supersession_chain(self, document_id: str) -> list[str]:
        """Get IDs of the documents this document supersedes."""
        return list(self._supersessions.get(document_id, []))

    def link_to_holon_types(self, document_id: str, holon_types: Iterable[str]) -> None:
        """Link a document to the holon types it defines."""
        with self._lock:
            self._require(document_id)
            self._holon_type_links[document_id].update(holon_types)

    def link_to_constraints(self, document_id: str, constraint_ids: Iterable[str]) -> None:
        """Link a document to the constraints it defines."""
        with self._lock:
            self._require(document_id)
            self._constraint_links[document_id].update(constraint_ids)

    def get_document_linkage(self, document_id: str) -> Optional[dict[str, list[str]]]:
        """Get the holon types and constraints a document is linked to."""
        if document_id not in self._documents:
            return None
        return {
            "holon_types": sorted(self._holon_type_links.get(document_id, ())),
            "constraints": sorted(self._constraint_links.get(document_id, ())),
        }

    def _linked_documents(self, links: dict[str, set[str]], key: str) -> list[Document]:
        documents = []
        for doc_id, linked in list(links.items()):
            document = self._documents.get(doc_id)
            if document is not None and key in linked:
                documents.append(document)
        return documents

    def get_documents_defining_holon_type(self, holon_type: str) -> list[Document]:
        """Get all documents that define a holon type."""
        return self._linked_documents(self._holon_type_links, holon_type)

    def get_documents_defining_constraint(self, constraint_id: str) -> list[Document]:
        return self._linked_documents(self._constraint_links, constraint_id)

    def get_all_documents(self) -> list[Document]:
        """Get every registered document."""
        return list(self._documents.values())

    def clear(self) -> None:
        """Remove all documents. Intended for tests."""
        with self._lock:
            self._documents.clear()
            for ids in self._by_type.values():
                ids.clear()
            self._supersessions.clear()
            self._holon_type_links.clear()
            self._constraint_links.clear()

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        """Return number of registered documents."""
        return len(self._documents)
