from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from typing import Any, List, Optional
from pydantic import BaseModel
from datetime import datetime

from database.DB import get_db
from models.models import User
from models.errors import TournamentError
from services.EventService import EventService
from services.RegistrationEngine import RegistrationEngine
from services.ScoringEngine import ScoringEngine
from services.StandingsEngine import StandingsEngine
from helpers.Logger import get_logger
from .dependencies import get_current_user, require_admin

router = APIRouter()
logger = get_logger("routes.events")


# Pydantic models
class QuestionCreate(BaseModel):
    question: Optional[str] = None
    options: List[str] = []
    answer: Optional[str] = None


class EventCreate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    questions: Optional[List[QuestionCreate]] = None
    maxParticipants: Optional[int] = None
    teamSize: Optional[int] = None


class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    maxParticipants: Optional[int] = None
    teamSize: Optional[int] = None


class Submission(BaseModel):
    answers: Any = None


class Subscription(BaseModel):
    type: str = "individual"
    teamId: Optional[str] = None


def _internal_error(action: str, e: Exception):
    logger.error(f"Error {action}: {e}")
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


@router.post('')
async def create_event(event_data: EventCreate, admin_user: User = Depends(require_admin), db = Depends(get_db)):
    """Create a new event (Admin only)"""
    try:
        data = event_data.model_dump()
        if event_data.questions is not None:
            data["questions"] = [question.model_dump() for question in event_data.questions]
        event = await EventService(db).create_event(data)
        return JSONResponse(status_code=201, content=event.model_dump(mode="json", exclude={"version"}))
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("creating event", e)


@router.get('')
async def get_events(
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db = Depends(get_db)
):
    """List events, optionally filtered by type, derived status and free text"""
    try:
        return await EventService(db).list_events(
            event_type=type, status=status, search=search, include_answers=user.role == "admin"
        )
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("fetching events", e)


@router.get('/user/history')
async def get_user_event_history(user: User = Depends(get_current_user), db = Depends(get_db)):
    """Every event the current user takes part in, with score and completion status"""
    try:
        return await StandingsEngine(db).user_event_history(user.id)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("fetching event history", e)


@router.get('/{event_id}')
async def get_event(event_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    """Get one event; answers are only shown to admins"""
    try:
        return await EventService(db).get_event(event_id, include_answers=user.role == "admin")
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("fetching event", e)


@router.put('/{event_id}')
async def update_event(event_id: str, event_data: EventUpdate, admin_user: User = Depends(require_admin), db = Depends(get_db)):
    """Update an existing event (Admin only)"""
    try:
        changes = event_data.model_dump(exclude_unset=True)
        return await EventService(db).update_event(event_id, changes)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("updating event", e)


@router.delete('/{event_id}')
async def delete_event(event_id: str, admin_user: User = Depends(require_admin), db = Depends(get_db)):
    """Delete an event (Admin only)"""
    try:
        await EventService(db).delete_event(event_id)
        return JSONResponse(content={"message": "Event deleted successfully"})
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("deleting event", e)


@router.post('/{event_id}/participate')
async def participate(event_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    """Join an online event and receive its questions without answers"""
    try:
        return await ScoringEngine(db).participate(event_id, user.id)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("joining event", e)


@router.post('/{event_id}/submit')
async def submit_answers(event_id: str, submission: Submission, user: User = Depends(get_current_user), db = Depends(get_db)):
    try:
        return await ScoringEngine(db).submit(event_id, user.id, submission.answers)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("submitting answers", e)


@router.post('/{event_id}/subscribe')
async def subscribe(event_id: str, subscription: Subscription, user: User = Depends(get_current_user), db = Depends(get_db)):
    """Register the current user, or one of their teams, for an offline event"""
    try:
        return await RegistrationEngine(db).register_offline(
            event_id, user.id, kind=subscription.type, team_id=subscription.teamId
        )
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("registering for event", e)


@router.get('/{event_id}/leaderboard')
async def event_leaderboard(event_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    try:
        return await StandingsEngine(db).event_leaderboard(event_id)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("fetching event leaderboard", e)


@router.get('/{event_id}/team-standings')
async def team_standings(event_id: str, user: User = Depends(get_current_user), db = Depends(get_db)):
    try:
        return await StandingsEngine(db).team_standings_for_event(event_id)
    except TournamentError:
        raise
    except Exception as e:
        raise _internal_error("fetching team standings", e)
