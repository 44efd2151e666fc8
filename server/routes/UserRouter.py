from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
from typing import List, Optional
from pydantic import BaseModel

from database.DB import get_db
from models.models import User
from models.errors import TournamentError
from services.StandingsEngine import StandingsEngine
from services.UserService import UserService, user_profile
from helpers.Logger import get_logger
from .dependencies import get_current_user, token_strategy

router = APIRouter()
logger = get_logger("routes.users")


# Pydantic models
class TeamMemberIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class UserRegister(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    participationType: Optional[str] = None
    teamName: Optional[str] = None
    teamMembers: Optional[List[TeamMemberIn]] = None


class UserLogin(BaseModel):
    email: str
    password: str


@router.post('/register')
async def register(payload: UserRegister, db = Depends(get_db)):
    try:
        members = [member.model_dump() for member in payload.teamMembers or []]
        user = await UserService(db).register(
            payload.username, payload.email, payload.password, payload.participationType,
            team_name=payload.teamName, team_members=members,
        )
        return JSONResponse(status_code=201, content={
            "message": "Registration successful",
            "token": token_strategy.create_access_token(user.id),
            "user": user_profile(user),
        })
    except TournamentError:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail="Registration failed. Please try again.")


@router.post('/login')
async def login(payload: UserLogin, db = Depends(get_db)):
    user = await UserService(db).authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": token_strategy.create_access_token(user.id), "user": user_profile(user)}


@router.get('/profile')
async def profile(user: User = Depends(get_current_user)):
    return user_profile(user)


@router.get('/leaderboard')
async def users_leaderboard(user: User = Depends(get_current_user), db = Depends(get_db)):
    """Individual players ranked by cumulative score."""
    try:
        return await StandingsEngine(db).users_leaderboard()
    except Exception as e:
        logger.error(f"Error fetching users leaderboard: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch users leaderboard")
