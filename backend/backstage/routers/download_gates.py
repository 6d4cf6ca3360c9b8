"""Owner dashboard: manage download gates and inspect their funnel."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import GateCreate, GateOut, GateStatsOut, GateUpdate, PaginationResponse, SubmissionOut, SubmissionPage
from ..use_cases.gates_admin import (
    create_gate_use_case,
    delete_gate_use_case,
    gate_stats_use_case,
    get_owned_gate,
    list_gates_use_case,
    list_submissions_use_case,
    update_gate_use_case,
)

router = APIRouter(prefix="/download-gates", tags=["download-gates"])


@router.get("", response_model=list[GateOut])
def list_gates(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_gates_use_case(db=db, owner=current_user)


@router.post("", response_model=GateOut, status_code=201)
def create_gate(
    data: GateCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_gate_use_case(db=db, owner=current_user, data=data)


@router.get("/{gate_id}", response_model=GateOut)
def get_gate(gate_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_owned_gate(db, owner=current_user, gate_id=gate_id)


@router.patch("/{gate_id}", response_model=GateOut)
def update_gate(
    gate_id: UUID,
    data: GateUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return update_gate_use_case(db=db, owner=current_user, gate_id=gate_id, data=data)


@router.delete("/{gate_id}", status_code=204)
def delete_gate(gate_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    delete_gate_use_case(db=db, owner=current_user, gate_id=gate_id)
    return Response(status_code=204)


@router.get("/{gate_id}/stats", response_model=GateStatsOut)
def get_gate_stats(gate_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return gate_stats_use_case(db=db, owner=current_user, gate_id=gate_id)


@router.get("/{gate_id}/submissions", response_model=SubmissionPage)
def list_gate_submissions(
    gate_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = list_submissions_use_case(db=db, owner=current_user, gate_id=gate_id, limit=limit, offset=offset)
    return SubmissionPage(
        data=[SubmissionOut.model_validate(item) for item in items],
        pagination=PaginationResponse(total=total, limit=limit, offset=offset),
    )
