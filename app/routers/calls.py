"""
AIVox Dashboard - Calls Router
Calls are written by the Retell sync only; these endpoints read them
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import crud, schemas
from app.exceptions import ValidationError, NotFoundError
from app.sync import to_millis

router = APIRouter()

def window_millis(start_date: Optional[datetime], end_date: Optional[datetime]):
    """Convert optional query dates to epoch-ms bounds"""
    start_ms = to_millis(start_date) if start_date else None
    end_ms = to_millis(end_date) if end_date else None
    if start_ms is not None and end_ms is not None and start_ms > end_ms:
        raise ValidationError("startDate must not be after endDate")
    return start_ms, end_ms

@router.get("")
async def list_calls(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    agentId: Optional[str] = Query(None),
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    callStatus: Optional[str] = Query(None),
    sortBy: schemas.SortBy = Query(schemas.SortBy.date),
    db: Session = Depends(get_db)
):
    """List calls with filters and pagination"""
    start_ms, end_ms = window_millis(startDate, endDate)

    calls, total = crud.list_calls(
        db, limit, offset,
        sort_by=sortBy.value,
        agent_id=agentId,
        call_status=callStatus,
        start_ms=start_ms,
        end_ms=end_ms,
    )

    return {
        "success": True,
        "data": {
            "calls": schemas.dump_many(schemas.CallWithAgent, calls),
            "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
        },
    }

@router.get("/{call_id}")
async def get_call(call_id: str, db: Session = Depends(get_db)):
    """Detailed call information"""
    call = crud.get_call(db, call_id)
    if not call:
        raise NotFoundError(f"Call with ID {call_id} not found")

    return {"success": True, "data": schemas.dump(schemas.CallWithAgent, call)}
