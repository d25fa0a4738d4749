"""
Database Repository — Flow Persistence Layer

Flows are opaque blobs keyed by id; this layer never inspects the graph.
Four public functions:
    save_flow   — insert a flow row with its validation outcome
    get_flow    — fetch one flow by id (None when unknown)
    list_flows  — most recently updated first, paged
    delete_flow — remove a flow by id

Callers manage commit/rollback.
"""

import uuid

from sqlalchemy.orm import Session

from db.models import Flow


def save_flow(db: Session, name: str, flow: dict, *, description=None,
              is_valid=False, draft=False, errors=None, warnings=None) -> Flow:
    """Insert a flow row.

    Args:
        db: Active SQLAlchemy session (caller manages commit/rollback).
        name: Human-readable flow name.
        flow: Flow graph dict, stored verbatim.
        description: Optional free text.
        is_valid: Whether the stored graph passed validation.
        draft: Whether the flow was saved despite semantic errors.
        errors: Validation errors of the stored graph.
        warnings: Auto-fix warnings that produced the stored graph.

    Returns:
        The newly created Flow ORM instance (id populated).
    """
    row = Flow(
        id=uuid.uuid4(),
        name=name,
        description=description,
        flow=flow,
        is_valid=is_valid,
        draft=draft,
        errors=list(errors or []),
        warnings=list(warnings or []),
    )
    db.add(row)
    db.flush()
    return row


def get_flow(db: Session, flow_id):
    """Fetch a flow by id. Malformed ids are treated as unknown."""
    try:
        key = flow_id if isinstance(flow_id, uuid.UUID) else uuid.UUID(str(flow_id))
    except ValueError:
        return None
    return db.query(Flow).filter(Flow.id == key).first()


def list_flows(db: Session, limit: int = 50, offset: int = 0):
    """Most recently updated flows first."""
    return (
        db.query(Flow)
        .order_by(Flow.updated_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def delete_flow(db: Session, flow_id) -> bool:
    """Delete a flow by id.

    Returns:
        True if a row was deleted, False if the id is unknown or malformed.
    """
    row = get_flow(db, flow_id)
    if row is None:
        return False
    db.delete(row)
    db.flush()
    return True
