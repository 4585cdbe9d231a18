"""
AIVox Dashboard - Search Router
Case-insensitive substring search over calls and agents
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import crud, schemas
from app.routers.agents import agent_with_count

router = APIRouter()

@router.get("/calls")
async def search_calls(
    query: str = Query(..., min_length=1, max_length=500),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    agentId: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Search transcripts, caller info, summaries and call ids"""
    calls, total = crud.list_calls(db, limit, offset, sort_by="date", agent_id=agentId, search=query)

    return {
        "success": True,
        "data": {
            "calls": schemas.dump_many(schemas.CallWithAgent, calls),
            "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
        },
    }

@router.get("/agents")
async def search_agents(
    query: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Search agents by name or id"""
    rows, total = crud.list_agents(db, limit, offset, search=query)

    return {
        "success": True,
        "data": {
            "agents": [agent_with_count(agent, count) for agent, count in rows],
            "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
        },
    }
