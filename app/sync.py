"""
AIVox Dashboard - Retell Sync
Drains calls/agents from Retell and upserts them into the database
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app import crud, models
from app.retell_client import RetellClient

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    created: int = 0
    updated: int = 0
    errors: int = 0
    total: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def to_millis(value: datetime) -> int:
    """Epoch milliseconds; naive datetimes are taken as UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def placeholder_name(agent_id: str) -> str:
    return f"Agent {agent_id}"


def was_created(row) -> bool:
    # A row touched only once still has matching timestamps
    return row.created_at == row.updated_at


def map_call(record: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a Retell call record into Call column values"""
    call_id = record.get("call_id")
    if not call_id:
        raise ValueError("call record has no call_id")
    if not record.get("agent_id"):
        raise ValueError(f"call {call_id} has no agent_id")

    start = record.get("start_timestamp")
    end = record.get("end_timestamp")
    if start is None or end is None:
        raise ValueError(f"call {call_id} is missing start/end timestamps")
    start, end = int(start), int(end)
    if end < start:
        raise ValueError(f"call {call_id} ends before it starts")

    duration_ms = end - start
    call_cost = record.get("call_cost") or {}
    cost = float(call_cost.get("combined_cost") or 0)
    if cost < 0:
        raise ValueError(f"call {call_id} has a negative cost")
    analysis = record.get("call_analysis") or {}

    return {
        "call_id": call_id,
        "agent_id": record["agent_id"],
        "caller_info": record.get("caller_info") or record.get("from_number"),
        "start_timestamp": start,
        "end_timestamp": end,
        "duration_ms": duration_ms,
        "duration_seconds": duration_ms // 1000,
        "transcript": record.get("transcript"),
        "call_status": record.get("call_status"),
        "disconnection_reason": record.get("disconnection_reason"),
        "cost": cost,
        "call_summary": analysis.get("call_summary"),
        "user_sentiment": analysis.get("user_sentiment"),
        "call_successful": bool(analysis.get("call_successful") or False),
        "recording_url": record.get("recording_url"),
    }


async def fetch_agent_names(client: RetellClient) -> Dict[str, str]:
    """Best-effort roster lookup; an empty map means placeholder names"""
    try:
        agents = await client.list_agents()
    except Exception as e:
        logger.warning(f"Failed to fetch agents from Retell API, will use default names: {e}")
        return {}

    if not agents:
        logger.warning("No agents found in Retell API")
    else:
        logger.info(f"Fetched {len(agents)} agents from Retell API")

    return {
        agent["agent_id"]: agent.get("agent_name") or placeholder_name(agent["agent_id"])
        for agent in agents
        if agent.get("agent_id")
    }


def unique_agent_ids(records: List[Dict[str, Any]]) -> List[str]:
    seen = {}
    for record in records:
        agent_id = record.get("agent_id")
        if agent_id:
            seen.setdefault(agent_id, None)
    return list(seen)


async def sync_calls(
    db: Session,
    client: RetellClient,
    days: int = 30,
    agent_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SyncSummary:
    """Pull the last `days` of calls and upsert them.

    Agents referenced by the calls are upserted first so that every call row
    points at an existing agent. A failing record is rolled back, logged and
    counted; a failing page fetch aborts the whole sync.
    """
    end = now or datetime.now(timezone.utc)
    start = end - timedelta(days=days)
    summary = SyncSummary(start=start, end=end)

    logger.info(f"Starting call sync: days={days}, agent_id={agent_id}, "
                f"range={start.isoformat()}..{end.isoformat()}")

    agent_names = await fetch_agent_names(client)

    try:
        records = await client.fetch_all(start_ms=to_millis(start), end_ms=to_millis(end))
    except Exception as e:
        logger.error(f"Call sync failed: {e} (days={days}, agent_id={agent_id})")
        raise

    if agent_id:
        records = [record for record in records if record.get("agent_id") == agent_id]
    summary.total = len(records)

    if not records:
        logger.info("No calls found in the specified date range")
        return summary

    # Agents first, so the calls' foreign keys resolve
    agent_ids = unique_agent_ids(records)
    logger.info(f"Creating/updating {len(agent_ids)} agents")
    for retell_agent_id in agent_ids:
        try:
            crud.upsert_agent(
                db,
                retell_agent_id,
                agent_names.get(retell_agent_id, placeholder_name(retell_agent_id)),
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating/updating agent {retell_agent_id}: {e}")

    for record in records:
        try:
            call = crud.upsert_call(db, map_call(record))
            if was_created(call):
                summary.created += 1
            else:
                summary.updated += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Error processing call {record.get('call_id')}: {e}")
            summary.errors += 1

    logger.info(f"Call sync completed: total={summary.total}, created={summary.created}, "
                f"updated={summary.updated}, errors={summary.errors}")
    return summary


async def sync_agents(db: Session, client: RetellClient) -> SyncSummary:
    """Upsert the whole Retell agent roster; published agents are ACTIVE"""
    logger.info("Starting agent sync from Retell API")

    try:
        agents = await client.list_agents()
    except Exception as e:
        logger.error(f"Agent sync failed: {e}")
        raise

    summary = SyncSummary(total=len(agents or []))
    for agent in agents or []:
        retell_agent_id = agent.get("agent_id")
        try:
            if not retell_agent_id:
                raise ValueError("agent record has no agent_id")
            status = models.AgentStatus.ACTIVE if agent.get("is_published") else models.AgentStatus.INACTIVE
            row = crud.upsert_agent(
                db,
                retell_agent_id,
                agent.get("agent_name") or placeholder_name(retell_agent_id),
                status=status.value,
            )
            if was_created(row):
                summary.created += 1
            else:
                summary.updated += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Error syncing agent {retell_agent_id}: {e}")
            summary.errors += 1

    logger.info(f"Agent sync completed: total={summary.total}, created={summary.created}, "
                f"updated={summary.updated}, errors={summary.errors}")
    return summary
