from datetime import datetime
from typing import Any, Callable, Dict

from config import config
from database.base import DatabaseInterface, UnitOfWork, run_transaction
from helpers.Clock import utc_now
from helpers.Logger import get_logger
from models.models import Team, TeamMember
from models.errors import ValidationError, NotFoundError, ConflictError, AuthorizationError
from .StandingsEngine import average_event_score

logger = get_logger("services.teams")


def serialize_team(team: Team) -> Dict[str, Any]:
    data = team.model_dump(mode="json", exclude={"version"})
    data["memberCount"] = len(team.members)
    data["averageEventScore"] = average_event_score(team)
    return data


class TeamService:
    def __init__(self, db: DatabaseInterface, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def create_team(self, name: str, requester_id: str) -> Team:
        if not name or not name.strip():
            raise ValidationError("Team name is required")

        async def work(uow: UnitOfWork):
            user = await uow.get_user(requester_id)
            if not user:
                raise NotFoundError("User not found")
            if user.teamId:
                raise ConflictError("User already belongs to a team")
            if await self.db.find_team_by_name(name):
                raise ConflictError("Team name already taken")

            team = Team(name=name.strip(), captain=user.id)
            team.ensure_captain(user)
            user.teamId = team.id
            user.isCaptain = True
            user.participationType = "team"
            user.updatedAt = self.clock()
            uow.add_team(team)
            uow.save_user(user)
            await uow.commit()
            return team

        team = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"Created team '{team.name}' ({team.id}) captained by {requester_id}")
        return team

    async def get_team(self, team_id: str) -> Team:
        team = await self.db.find_team(team_id)
        if not team:
            raise NotFoundError("Team not found")
        return team

    async def add_member(self, team_id: str, requester_id: str, member_id: str) -> Team:
        if not member_id:
            raise ValidationError("memberId is required")

        async def work(uow: UnitOfWork):
            team = await uow.get_team(team_id)
            if not team:
                raise NotFoundError("Team not found")
            if team.captain != requester_id:
                raise AuthorizationError("Only the team captain can add members")
            if team.has_member(member_id):
                return team

            member = await uow.get_user(member_id)
            if not member:
                raise NotFoundError("User not found")
            if member.teamId and member.teamId != team.id:
                raise ConflictError("User already belongs to another team")

            team.members.append(TeamMember(name=member.username, email=member.email, user=member.id))
            team.updatedAt = self.clock()
            member.teamId = team.id
            member.participationType = "team"
            member.updatedAt = self.clock()
            uow.save_team(team)
            uow.save_user(member)
            await uow.commit()
            return team

        team = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"Team {team_id} now has {len(team.members)} members")
        return team

    async def team_stats(self, team_id: str) -> Dict[str, Any]:
        team = await self.get_team(team_id)
        events = [
            {"event": event_id, **entry.model_dump(mode="json")}
            for event_id, entry in team.eventsParticipated.items()
        ]
        return {
            "teamName": team.name,
            "totalScore": team.score,
            "totalWins": team.wins,
            "averageScore": average_event_score(team),
            "memberCount": len(team.members),
            "eventsParticipated": events,
        }
