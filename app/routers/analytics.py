"""
AIVox Dashboard - Analytics Router
Read-only aggregates over synced calls
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app import crud, models
from app.routers.calls import window_millis

router = APIRouter()

def rate(part, whole) -> float:
    """Percentage rounded to two decimals; 0 when there is nothing to divide"""
    return round(part / whole * 100, 2) if whole else 0

def average(total, count, digits: int = 2):
    return round(total / count, digits) if count else 0

@router.get("/overview")
async def analytics_overview(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    agentId: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Dashboard overview statistics"""
    start_ms, end_ms = window_millis(startDate, endDate)
    filters = {"agent_id": agentId, "start_ms": start_ms, "end_ms": end_ms}

    total_calls = crud.count_calls(db, **filters)
    total_cost = crud.sum_calls(db, models.Call.cost, **filters)
    successful_calls = crud.count_calls(db, successful=True, **filters)
    total_duration = crud.sum_calls(db, models.Call.duration_seconds, **filters)
    calls_by_status = crud.group_count_calls(db, models.Call.call_status, **filters)
    total_agents = 1 if agentId else crud.count_agents(db, status=models.AgentStatus.ACTIVE.value)

    return {
        "success": True,
        "data": {
            "totalCalls": total_calls,
            "totalCost": total_cost,
            "avgCost": average(total_cost, total_calls),
            "successfulCalls": successful_calls,
            "successRate": rate(successful_calls, total_calls),
            "totalAgents": total_agents,
            "totalDurationSeconds": total_duration,
            "avgDurationSeconds": round(total_duration / total_calls) if total_calls else 0,
            "callsByStatus": {str(status): count for status, count in calls_by_status.items()},
        },
    }

@router.get("/agents")
async def analytics_agents(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    db: Session = Depends(get_db)
):
    """Performance metrics for every active agent"""
    start_ms, end_ms = window_millis(startDate, endDate)
    metrics = crud.agent_call_metrics(db, start_ms=start_ms, end_ms=end_ms)

    agent_metrics = []
    for agent in crud.list_active_agents(db):
        stats = metrics.get(agent.agent_id, {})
        total_calls = stats.get("totalCalls", 0)
        successful_calls = stats.get("successfulCalls", 0)
        total_cost = stats.get("totalCost", 0)
        total_duration = stats.get("totalDurationSeconds", 0)

        agent_metrics.append({
            "agent_id": agent.agent_id,
            "agent_name": agent.agent_name,
            "totalCalls": total_calls,
            "successfulCalls": successful_calls,
            "successRate": rate(successful_calls, total_calls),
            "totalCost": total_cost,
            "avgCost": average(total_cost, total_calls),
            "totalDurationSeconds": total_duration,
            "avgDurationSeconds": round(total_duration / total_calls) if total_calls else 0,
        })

    return {"success": True, "data": agent_metrics}

@router.get("/calls")
async def analytics_calls(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    agentId: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Daily call trends; defaults to the last 30 days"""
    end = endDate or datetime.now(timezone.utc)
    start = startDate or end - timedelta(days=30)
    start_ms, end_ms = window_millis(start, end)

    calls = crud.calls_in_window(db, agent_id=agentId, start_ms=start_ms, end_ms=end_ms)

    # Group by UTC calendar day
    daily_stats = {}
    for call in calls:
        day = datetime.fromtimestamp(call.start_timestamp / 1000, tz=timezone.utc).date().isoformat()
        bucket = daily_stats.setdefault(day, {
            "date": day,
            "totalCalls": 0,
            "successfulCalls": 0,
            "totalCost": 0,
            "totalDuration": 0,
        })
        bucket["totalCalls"] += 1
        if call.call_successful:
            bucket["successfulCalls"] += 1
        bucket["totalCost"] += call.cost
        bucket["totalDuration"] += call.duration_seconds

    total_calls = len(calls)
    total_cost = sum(call.cost for call in calls)
    total_duration = sum(call.duration_seconds for call in calls)
    successful_calls = sum(1 for call in calls if call.call_successful)

    return {
        "success": True,
        "data": {
            "dateRange": {
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
            "summary": {
                "totalCalls": total_calls,
                "successfulCalls": successful_calls,
                "successRate": round(successful_calls / total_calls * 100) if total_calls else 0,
                "totalCost": round(total_cost, 2),
                "avgCost": average(total_cost, total_calls),
                "totalDurationSeconds": total_duration,
                "avgDurationSeconds": round(total_duration / total_calls) if total_calls else 0,
            },
            "dailyStats": [daily_stats[day] for day in sorted(daily_stats)],
        },
    }

@router.get("/sentiment")
async def analytics_sentiment(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    agentId: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Distribution of user sentiment across calls that have one"""
    start_ms, end_ms = window_millis(startDate, endDate)
    sentiment_counts = crud.group_count_calls(
        db, models.Call.user_sentiment,
        agent_id=agentId, start_ms=start_ms, end_ms=end_ms, has_sentiment=True,
    )

    total_with_sentiment = sum(sentiment_counts.values())
    distribution = {
        sentiment: {
            "count": count,
            "percentage": round(count / total_with_sentiment * 100) if total_with_sentiment else 0,
        }
        for sentiment, count in sentiment_counts.items()
    }

    return {
        "success": True,
        "data": {
            "totalCallsWithSentiment": total_with_sentiment,
            "sentimentDistribution": distribution,
        },
    }
