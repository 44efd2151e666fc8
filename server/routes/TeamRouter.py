from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
from typing import Optional
from pydantic import BaseModel

from database.DB import get_db
from models.models import User
from models.errors import TournamentError
from services.StandingsEngine import StandingsEngine
from services.TeamService import TeamService, serialize_team
from helpers.Logger import get_logger
from .dependencies import get_current_user

router = APIRouter()
logger = get_logger("routes.teams")


# Pydantic models
class TeamCreate(BaseModel):
    name: Optional[str] = None


class MemberAdd(BaseModel):
    memberId: Optional[str] = None


@router.get('/leaderboard')
async def teams_leaderboard(db = Depends(get_db)):
    """Return all teams ranked by cumulative score."""
    try:
        return await StandingsEngine(db).teams_leaderboard()
    except Exception as e:
        logger.error(f"Error fetching leaderboard: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching leaderboard: {str(e)}")


@router.post('')
async def create_team(payload: TeamCreate, user: User = Depends(get_current_user), db = Depends(get_db)):
    """Create a new team with the requesting user as captain."""
    try:
        team = await TeamService(db).create_team(payload.name, user.id)
        return JSONResponse(status_code=201, content=serialize_team(team))
    except TournamentError:
        raise
    except Exception as e:
        logger.error(f"Error creating team: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating team: {str(e)}")


@router.get('/{team_id}')
async def get_team(team_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    try:
        team = await TeamService(db).get_team(team_id)
        return serialize_team(team)
    except TournamentError:
        raise
    except Exception as e:
        logger.error(f"Error fetching team: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching team: {str(e)}")


@router.get('/{team_id}/stats')
async def team_stats(team_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    try:
        return await TeamService(db).team_stats(team_id)
    except TournamentError:
        raise
    except Exception as e:
        logger.error(f"Error fetching team stats: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching team statistics: {str(e)}")


@router.put('/{team_id}')
async def add_member(team_id: str, payload: MemberAdd, user: User = Depends(get_current_user), db = Depends(get_db)):
    """Add a registered user to the team (captain only)."""
    try:
        team = await TeamService(db).add_member(team_id, user.id, payload.memberId)
        return serialize_team(team)
    except TournamentError:
        raise
    except Exception as e:
        logger.error(f"Error adding member: {e}")
        raise HTTPException(status_code=500, detail=f"Error adding member: {str(e)}")
