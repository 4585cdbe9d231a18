"""
AIVox Dashboard - Store Access Layer
Typed queries over agents, calls and users
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, joinedload

from app import models
from app.models import utcnow

CALL_SORT_COLUMNS = {
    "date": models.Call.start_timestamp,
    "duration": models.Call.duration_ms,
    "cost": models.Call.cost,
}

CALL_SEARCH_COLUMNS = (
    models.Call.transcript,
    models.Call.caller_info,
    models.Call.call_summary,
    models.Call.call_id,
)

AGENT_SEARCH_COLUMNS = (models.Agent.agent_name, models.Agent.agent_id)

USER_SEARCH_COLUMNS = (models.User.email, models.User.name)


def text_search(columns: Sequence, term: str):
    """Case-insensitive substring match over any of `columns`"""
    pattern = f"%{term}%"
    return or_(*[column.ilike(pattern) for column in columns])


def paginate(query, limit: int, offset: int) -> Tuple[List, int]:
    """Return one page of `query` and the unpaginated total"""
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    return rows, total


def dialect_insert(db: Session, model):
    """INSERT supporting ON CONFLICT for the bound backend (PostgreSQL or SQLite)"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


# ============================================
# Agents
# ============================================

def get_agent(db: Session, agent_id: str) -> Optional[models.Agent]:
    return db.query(models.Agent).filter(models.Agent.agent_id == agent_id).first()


def agent_filters(status: Optional[str] = None, search: Optional[str] = None) -> List:
    conditions = []
    if status:
        conditions.append(models.Agent.status == status)
    if search:
        conditions.append(text_search(AGENT_SEARCH_COLUMNS, search))
    return conditions


def list_agents(
    db: Session,
    limit: int,
    offset: int,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Tuple[models.Agent, int]], int]:
    """Page of agents, newest first, each paired with its call count"""
    query = db.query(models.Agent).filter(*agent_filters(status, search))
    total = query.count()

    agents = query.order_by(models.Agent.created_at.desc(), models.Agent.id.asc())\
        .offset(offset).limit(limit).all()

    counts = call_counts_by_agent(db, [agent.agent_id for agent in agents])
    return [(agent, counts.get(agent.agent_id, 0)) for agent in agents], total


def create_agent(db: Session, agent_id: str, agent_name: str, status: str = models.AgentStatus.ACTIVE.value) -> models.Agent:
    now = utcnow()
    agent = models.Agent(
        agent_id=agent_id,
        agent_name=agent_name,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


def update_agent(db: Session, agent: models.Agent, values: Dict[str, Any]) -> models.Agent:
    for field, value in values.items():
        setattr(agent, field, value)
    agent.updated_at = utcnow()
    db.commit()
    db.refresh(agent)
    return agent


def deactivate_agent(db: Session, agent: models.Agent) -> models.Agent:
    """Soft delete: agents keep existing so their calls stay referenced"""
    return update_agent(db, agent, {"status": models.AgentStatus.INACTIVE.value})


def upsert_agent(
    db: Session,
    agent_id: str,
    agent_name: str,
    status: Optional[str] = None,
) -> models.Agent:
    """Create the agent or refresh its name (and status, if given) in one statement"""
    now = utcnow()
    insert_stmt = dialect_insert(db, models.Agent).values(
        agent_id=agent_id,
        agent_name=agent_name,
        status=status or models.AgentStatus.ACTIVE.value,
        created_at=now,
        updated_at=now,
    )
    changes = {"agent_name": insert_stmt.excluded.agent_name, "updated_at": now}
    if status:
        changes["status"] = insert_stmt.excluded.status

    db.execute(insert_stmt.on_conflict_do_update(index_elements=["agent_id"], set_=changes))
    db.commit()
    return db.query(models.Agent)\
        .populate_existing()\
        .filter(models.Agent.agent_id == agent_id).one()



def count_agents(db: Session, status: Optional[str] = None) -> int:
    return db.query(models.Agent).filter(*agent_filters(status)).count()


def list_active_agents(db: Session) -> List[models.Agent]:
    return db.query(models.Agent)\
        .filter(models.Agent.status == models.AgentStatus.ACTIVE.value)\
        .order_by(models.Agent.id.asc()).all()


# ============================================
# Calls
# ============================================

def get_call(db: Session, call_id: str) -> Optional[models.Call]:
    return db.query(models.Call)\
        .options(joinedload(models.Call.agent))\
        .filter(models.Call.call_id == call_id).first()


def call_filters(
    agent_id: Optional[str] = None,
    call_status: Optional[str] = None,
    start_ms: Optional[int] = None,
    end_ms: Optional[int] = None,
    successful: Optional[bool] = None,
    has_sentiment: bool = False,
    search: Optional[str] = None,
) -> List:
    conditions = []
    if agent_id:
        conditions.append(models.Call.agent_id == agent_id)
    if call_status:
        conditions.append(models.Call.call_status == call_status)
    if start_ms is not None:
        conditions.append(models.Call.start_timestamp >= start_ms)
    if end_ms is not None:
        conditions.append(models.Call.start_timestamp <= end_ms)
    if successful is not None:
        conditions.append(models.Call.call_successful == successful)
    if has_sentiment:
        conditions.append(models.Call.user_sentiment.isnot(None))
    if search:
        conditions.append(text_search(CALL_SEARCH_COLUMNS, search))
    return conditions


def list_calls(
    db: Session,
    limit: int,
    offset: int,
    sort_by: str = "date",
    **filters,
) -> Tuple[List[models.Call], int]:
    """Page of calls sorted descending by `sort_by`; ties keep insertion order"""
    sort_column = CALL_SORT_COLUMNS.get(sort_by, models.Call.start_timestamp)
    query = db.query(models.Call)\
        .options(joinedload(models.Call.agent))\
        .filter(*call_filters(**filters))\
        .order_by(sort_column.desc(), models.Call.id.asc())
    return paginate(query, limit, offset)


def calls_in_window(db: Session, **filters) -> List[models.Call]:
    return db.query(models.Call)\
        .filter(*call_filters(**filters))\
        .order_by(models.Call.start_timestamp.asc()).all()


def upsert_call(db: Session, data: Dict[str, Any]) -> models.Call:
    """Create or overwrite the call keyed by its external call_id in one statement"""
    now = utcnow()
    insert_stmt = dialect_insert(db, models.Call).values(**data, created_at=now, updated_at=now)
    changes = {
        field: insert_stmt.excluded[field]
        for field in data
        if field != "call_id"
    }
    changes["updated_at"] = now

    db.execute(insert_stmt.on_conflict_do_update(index_elements=["call_id"], set_=changes))
    db.commit()
    return db.query(models.Call)\
        .options(joinedload(models.Call.agent))\
        .populate_existing()\
        .filter(models.Call.call_id == data["call_id"]).one()


def count_calls(db: Session, **filters) -> int:
    return db.query(func.count(models.Call.id)).filter(*call_filters(**filters)).scalar() or 0


def sum_calls(db: Session, column, **filters):
    return db.query(func.coalesce(func.sum(column), 0)).filter(*call_filters(**filters)).scalar() or 0


def group_count_calls(db: Session, column, **filters) -> Dict[Any, int]:
    rows = db.query(column, func.count(models.Call.id))\
        .filter(*call_filters(**filters))\
        .group_by(column).all()
    return {key: count for key, count in rows}


def call_counts_by_agent(db: Session, agent_ids: Sequence[str]) -> Dict[str, int]:
    if not agent_ids:
        return {}
    rows = db.query(models.Call.agent_id, func.count(models.Call.id))\
        .filter(models.Call.agent_id.in_(agent_ids))\
        .group_by(models.Call.agent_id).all()
    return {agent_id: count for agent_id, count in rows}


def agent_call_metrics(db: Session, **filters) -> Dict[str, Dict[str, Any]]:
    """Per-agent call count, success count, cost and duration sums"""
    rows = db.query(
        models.Call.agent_id,
        func.count(models.Call.id),
        func.coalesce(func.sum(case((models.Call.call_successful.is_(True), 1), else_=0)), 0),
        func.coalesce(func.sum(models.Call.cost), 0),
        func.coalesce(func.sum(models.Call.duration_seconds), 0),
    ).filter(*call_filters(**filters))\
     .group_by(models.Call.agent_id).all()

    return {
        agent_id: {
            "totalCalls": total,
            "successfulCalls": int(successful),
            "totalCost": float(cost),
            "totalDurationSeconds": int(duration),
        }
        for agent_id, total, successful, cost, duration in rows
    }


def last_updated(db: Session, model) -> Optional[Any]:
    return db.query(func.max(model.updated_at)).scalar()


# ============================================
# Users
# ============================================

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def list_users(
    db: Session,
    limit: int,
    offset: int,
    role: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[models.User], int]:
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    if search:
        query = query.filter(text_search(USER_SEARCH_COLUMNS, search))
    query = query.order_by(models.User.created_at.desc(), models.User.id.asc())
    return paginate(query, limit, offset)


def create_user(
    db: Session,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    role: str = models.UserRole.USER.value,
    status: str = models.UserStatus.APPROVED.value,
) -> models.User:
    user = models.User(
        email=email,
        password_hash=password_hash,
        name=name,
        role=role,
        status=status,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: models.User, values: Dict[str, Any]) -> models.User:
    for field, value in values.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: models.User):
    db.delete(user)
    db.commit()
