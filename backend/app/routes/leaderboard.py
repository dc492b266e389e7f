# backend/app/routes/leaderboard.py

from fastapi import APIRouter, Query

from app.services import leaderboard_service

router = APIRouter(prefix="/api/leaderboard", tags=["Leaderboard"])


@router.get("")
def leaderboard(
    category: str = "all",
    time_period: str = Query("all-time", alias="timePeriod"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    data = leaderboard_service.get_leaderboard(category, time_period, limit, offset)
    return {"success": True, "data": data}


@router.get("/stats")
def stats():
    return {"success": True, "data": leaderboard_service.get_stats()}


@router.get("/categories")
def categories():
    return {"success": True, "data": leaderboard_service.CATEGORIES}
