from fastapi import APIRouter, HTTPException, Depends

from database.DB import get_db
from services.StandingsEngine import StandingsEngine
from helpers.Logger import get_logger

router = APIRouter()
logger = get_logger("routes.leaderboard")


@router.get('')
async def global_leaderboard(db = Depends(get_db)):
    """Individual players and teams in one ranking by cumulative score."""
    try:
        return await StandingsEngine(db).global_leaderboard()
    except Exception as e:
        logger.error(f"Error fetching leaderboard: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching leaderboard: {str(e)}")
