import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config import config
from database.base import DatabaseInterface, UnitOfWork, run_transaction
from helpers.Clock import utc_now
from helpers.Logger import get_logger
from helpers.PasswordHashingStrategy import PasswordHashingStrategy
from models.models import Team, TeamMember, User
from models.errors import ValidationError, ConflictError, NotFoundError

logger = get_logger("services.users")

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)

_password_strategy = PasswordHashingStrategy()


def formatted_role(user: User) -> str:
    return "Administrator" if user.role == "admin" else "Player"


def formatted_participation_type(user: User) -> str:
    return "Team Player" if user.participationType == "team" else "Individual Player"


def formatted_position(user: User) -> Optional[str]:
    if user.participationType != "team":
        return None
    return "Team Captain" if user.isCaptain else "Team Member"


def user_profile(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "formattedRole": formatted_role(user),
        "participationType": user.participationType,
        "formattedParticipationType": formatted_participation_type(user),
        "formattedPosition": formatted_position(user),
        "teamId": user.teamId,
        "isCaptain": user.isCaptain,
        "score": user.score,
        "wins": user.wins,
    }


def _validate_members(members: List[Dict[str, Any]]) -> None:
    for member in members:
        if not member.get("name") or not member.get("email"):
            raise ValidationError("All team members must have both name and email")
        if not EMAIL_PATTERN.match(member["email"]):
            raise ValidationError(f"Invalid email format for team member: {member['name']}")


class UserService:
    def __init__(self, db: DatabaseInterface, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def register(self, username: str, email: str, password: str, participation_type: str,
                       team_name: Optional[str] = None,
                       team_members: Optional[List[Dict[str, Any]]] = None) -> User:
        if not username or not email or not password or not participation_type:
            raise ValidationError("All required fields must be provided")
        if participation_type not in ("individual", "team"):
            raise ValidationError("Participation type must be individual or team")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters long")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters long")
        if participation_type == "team":
            if not team_name:
                raise ValidationError("Team name is required for team registration")
            _validate_members(team_members or [])

        hashed = _password_strategy.hash(password)

        async def work(uow: UnitOfWork):
            if await self.db.find_user_by_email(email):
                raise ConflictError("Email already registered")
            if await self.db.find_user_by_username(username):
                raise ConflictError("Username already taken")
            if participation_type == "team" and await self.db.find_team_by_name(team_name):
                raise ConflictError("Team name already taken")

            user = User(
                username=username,
                email=email.lower(),
                password=hashed,
                participationType=participation_type,
                isCaptain=participation_type == "team",
            )
            if participation_type == "team":
                team = Team(
                    name=team_name,
                    captain=user.id,
                    members=[
                        TeamMember(name=member["name"], email=member["email"])
                        for member in team_members or []
                        if member["email"].lower() != user.email
                    ],
                )
                team.ensure_captain(user)
                user.teamId = team.id
                uow.add_team(team)
            uow.add_user(user)
            await uow.commit()
            return user

        user = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"Registered {participation_type} user '{user.username}' ({user.id})")
        return user

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        user = await self.db.find_user_by_email(email or "")
        if not user or not _password_strategy.verify(password, user.password):
            return None
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.db.find_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user
