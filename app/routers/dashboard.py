"""
AIVox Dashboard - Dashboard Router
Retell sync, per-agent call history and quick status endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import crud, models, schemas
from app.exceptions import NotFoundError
from app.retell_client import RetellClient, get_retell_client
from app.sync import sync_agents, sync_calls

router = APIRouter()

def call_page(calls, total: int, limit: int, offset: int):
    return {
        "calls": schemas.dump_many(schemas.CallWithAgent, calls),
        "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
    }

@router.post("/sync-calls")
async def sync_calls_endpoint(
    body: Optional[schemas.SyncCallsRequest] = None,
    client: RetellClient = Depends(get_retell_client),
    db: Session = Depends(get_db)
):
    """Sync call data from Retell into the database"""
    body = body or schemas.SyncCallsRequest()
    summary = await sync_calls(db, client, days=body.days, agent_id=body.agentId)

    return {
        "success": True,
        "message": "Call sync completed" if summary.total else "No calls found in the specified date range",
        "callsSynced": summary.created,
        "callsUpdated": summary.updated,
        "errors": summary.errors,
        "dateRange": {
            "start": summary.start.isoformat(),
            "end": summary.end.isoformat(),
        },
    }

@router.post("/sync-agents")
async def sync_agents_endpoint(
    client: RetellClient = Depends(get_retell_client),
    db: Session = Depends(get_db)
):
    """Sync the Retell agent roster into the database"""
    summary = await sync_agents(db, client)

    return {
        "success": True,
        "message": "Agent sync completed" if summary.total else "No agents found in Retell API",
        "agentsSynced": summary.created,
        "agentsUpdated": summary.updated,
        "errors": summary.errors,
    }

@router.get("/agent-info/{agent_id}")
async def get_agent_info(agent_id: str, db: Session = Depends(get_db)):
    """Basic agent information"""
    agent = crud.get_agent(db, agent_id)
    if not agent:
        raise NotFoundError(f"Agent with ID {agent_id} not found")

    return {"success": True, "data": schemas.dump(schemas.Agent, agent)}

@router.get("/call-history")
async def get_all_call_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sortBy: schemas.SortBy = Query(schemas.SortBy.date),
    db: Session = Depends(get_db)
):
    """Call history across all agents"""
    calls, total = crud.list_calls(db, limit, offset, sort_by=sortBy.value)
    return {"success": True, "data": call_page(calls, total, limit, offset)}

@router.get("/call-history/{agent_id}")
async def get_agent_call_history(
    agent_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sortBy: schemas.SortBy = Query(schemas.SortBy.date),
    db: Session = Depends(get_db)
):
    """Paginated call history for one agent"""
    if not crud.get_agent(db, agent_id):
        raise NotFoundError(f"Agent with ID {agent_id} not found")

    calls, total = crud.list_calls(db, limit, offset, sort_by=sortBy.value, agent_id=agent_id)
    return {"success": True, "data": call_page(calls, total, limit, offset)}

@router.get("/stats")
async def get_stats(db: Session = Depends(get_db)):
    """Quick totals for the dashboard header"""
    total_agents = crud.count_agents(db)
    active_agents = crud.count_agents(db, status=models.AgentStatus.ACTIVE.value)

    return {
        "success": True,
        "data": {
            "agents": {
                "total": total_agents,
                "active": active_agents,
                "inactive": total_agents - active_agents,
            },
            "calls": {"total": crud.count_calls(db)},
            "cost": {"total": crud.sum_calls(db, models.Call.cost)},
        },
    }

@router.get("/sync-status")
async def get_sync_status(db: Session = Depends(get_db)):
    """When calls and agents were last written"""
    last_call_sync = crud.last_updated(db, models.Call)
    last_agent_sync = crud.last_updated(db, models.Agent)

    return {
        "success": True,
        "data": {
            "calls": {"lastSynced": last_call_sync.isoformat() if last_call_sync else None},
            "agents": {"lastSynced": last_agent_sync.isoformat() if last_agent_sync else None},
        },
    }
