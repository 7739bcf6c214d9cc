#!/usr/bin/env python3
"""
Simple example of using holonguard.

This demonstrates the basic flow:
1. Register authority documents with classification labels
2. Create users with roles and clearances
3. Check single entities and filter collections
"""

from holonguard import (
    ClassificationLevel,
    DocumentType,
    Event,
    Holon,
    Role,
    UserContext,
    create_audit_logger,
    create_engine,
)


def main():
    print("=" * 60)
    print("holonguard - Access Control Demo")
    print("=" * 60)
    print()

    audit = create_audit_logger()
    engine = create_engine(audit=audit)
    registry = engine.document_registry

    opord = registry.register_document({
        "title": "OPORD 24-07",
        "classification_metadata": "SECRET//NOFORN",
        "document_type": DocumentType.ORDER,
    }, created_by="evt-001")
    manual = registry.register_document({
        "title": "Personnel Manual",
        "classification_metadata": "UNCLASSIFIED",
        "document_type": DocumentType.MANUAL,
    }, created_by="evt-002")

    print("Documents:")
    for doc in registry.get_all_documents():
        print(f"  - {doc.title}: {registry.resolve_classification(doc.id).name}")
    print()

    holons = [
        Holon("mission-1", "Mission", source_documents=[opord.id]),
        Holon("person-1", "Person", source_documents=[manual.id]),
        Holon("org-1", "Organization"),
    ]
    event = Event("evt-100", "MissionPlanned", actor="person-1", source_document=opord.id)

    users = [
        UserContext("analyst", [Role.ANALYST], ClassificationLevel.UNCLASSIFIED),
        UserContext("cleared-analyst", [Role.ANALYST], ClassificationLevel.SECRET),
        UserContext("viewer", [Role.VIEWER], ClassificationLevel.TOP_SECRET),
        UserContext("admin", [Role.ADMINISTRATOR], ClassificationLevel.UNCLASSIFIED),
    ]

    for user in users:
        visible = engine.filter_holons(user, holons)
        print(f"{user.user_id} ({user.clearance_level.name}):")
        print(f"  holons visible: {[h.id for h in visible]}")
        print(f"  can read event: {engine.can_access_event(user, event).allowed}")
        print(f"  can submit events: {engine.can_submit_event(user).allowed}")
        print(f"  can modify schema: {engine.can_modify_schema(user).allowed}")
        print()

    print("Audit summary:")
    stats = audit.get_stats()
    print(f"  events: {stats['total_events']}, denied: {stats['denied']}")


if __name__ == "__main__":
    main()
