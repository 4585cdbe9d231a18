"""
AIVox Dashboard - Agents Router
Agents are never deleted; DELETE deactivates them
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import crud, models, schemas
from app.exceptions import ConflictError, NotFoundError

router = APIRouter()

def agent_with_count(agent: models.Agent, call_count: int):
    return {**schemas.dump(schemas.Agent, agent), "call_count": call_count}

def get_agent_or_404(db: Session, agent_id: str) -> models.Agent:
    agent = crud.get_agent(db, agent_id)
    if not agent:
        raise NotFoundError(f"Agent with ID {agent_id} not found")
    return agent

@router.get("")
async def list_agents(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status: Optional[models.AgentStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db)
):
    """List agents with filtering and pagination"""
    rows, total = crud.list_agents(
        db, limit, offset,
        status=status.value if status else None,
        search=search,
    )

    return {
        "success": True,
        "data": {
            "agents": [agent_with_count(agent, count) for agent, count in rows],
            "pagination": schemas.Pagination.build(total, limit, offset).model_dump(),
        },
    }

@router.post("", status_code=201)
async def create_agent(agent: schemas.AgentCreate, db: Session = Depends(get_db)):
    """Create a new agent"""
    if crud.get_agent(db, agent.agent_id):
        raise ConflictError("Agent with this ID already exists")

    db_agent = crud.create_agent(db, agent.agent_id, agent.agent_name, agent.status.value)
    return {"success": True, "data": schemas.dump(schemas.Agent, db_agent)}

@router.put("/{agent_id}")
async def update_agent(
    agent_id: str,
    agent_update: schemas.AgentUpdate,
    db: Session = Depends(get_db)
):
    """Update agent name and/or status"""
    agent = get_agent_or_404(db, agent_id)
    values = agent_update.model_dump(exclude_unset=True, exclude_none=True, mode="json")

    agent = crud.update_agent(db, agent, values)
    return {"success": True, "data": schemas.dump(schemas.Agent, agent)}

@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, db: Session = Depends(get_db)):
    """Deactivate an agent (soft delete)"""
    agent = get_agent_or_404(db, agent_id)
    agent = crud.deactivate_agent(db, agent)

    return {
        "success": True,
        "message": "Agent deactivated successfully",
        "data": schemas.dump(schemas.Agent, agent),
    }
