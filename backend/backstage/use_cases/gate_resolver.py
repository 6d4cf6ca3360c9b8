"""Gate lookup with availability checks (active, not expired)."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from ..domain_errors import GateNotFoundError
from ..models import DownloadGate
from ..services.gate_rules import ensure_gate_available


def resolve_gate_use_case(*, db: Session, slug: str, now: datetime) -> DownloadGate:
    gate = db.query(DownloadGate).filter(DownloadGate.slug == (slug or "").strip().lower()).first()
    if gate is None:
        raise GateNotFoundError()
    ensure_gate_available(gate, now=now)
    return gate


def resolve_gate_by_id_use_case(*, db: Session, gate_id: UUID, now: datetime) -> DownloadGate:
    gate = db.query(DownloadGate).filter(DownloadGate.id == gate_id).first()
    if gate is None:
        raise GateNotFoundError()
    ensure_gate_available(gate, now=now)
    return gate
