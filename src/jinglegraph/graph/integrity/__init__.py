"""
Relationship Integrity Management.

Audits relationship directions against the canonical schema and repairs
what it finds:
- Invalid endpoint id detection
- Wrong-direction detection with duplicate lookup
- Repeated copies of correctly directed relationships
- Delete / swap / deduplicate repair with dry-run preview
"""

from jinglegraph.graph.integrity.relationship_audit import (
    AuditReport,
    AuditSummary,
    DuplicateRelationship,
    IncorrectRelationship,
    InvalidNodeId,
    NodePosition,
    RelationshipAuditor,
    create_relationship_auditor,
    format_audit_report,
)
from jinglegraph.graph.integrity.relationship_repair import (
    FixAction,
    FixOperation,
    FixReport,
    FixSummary,
    RelationshipRepair,
    create_relationship_repair,
    format_fix_report,
)

__all__ = [
    # Audit
    "RelationshipAuditor",
    "AuditReport",
    "AuditSummary",
    "DuplicateRelationship",
    "IncorrectRelationship",
    "InvalidNodeId",
    "NodePosition",
    "create_relationship_auditor",
    "format_audit_report",
    # Repair
    "RelationshipRepair",
    "FixReport",
    "FixOperation",
    "FixSummary",
    "FixAction",
    "create_relationship_repair",
    "format_fix_report",
]
