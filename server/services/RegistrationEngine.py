from datetime import datetime
from typing import Any, Callable, Dict, Optional

from config import config
from database.base import DatabaseInterface, UnitOfWork, run_transaction
from helpers.Clock import utc_now
from helpers.Logger import get_logger
from models.models import Event, Participant, Team
from models.errors import ValidationError, NotFoundError, ConflictError, AuthorizationError

logger = get_logger("services.registration")

REGISTRATION_KINDS = ("individual", "team")


def seats_for_team(event: Event, team: Team) -> int:
    """Seats one team registration consumes."""
    return event.teamSize or len(team.members) or config.DEFAULT_TEAM_SIZE


class RegistrationEngine:
    """Capacity-constrained enrollment of individuals and teams into offline events."""

    def __init__(self, db: DatabaseInterface, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def register_offline(self, event_id: str, requester_id: str, kind: str = "individual",
                               team_id: Optional[str] = None) -> Dict[str, Any]:
        if kind not in REGISTRATION_KINDS:
            raise ValidationError(f"Registration type must be one of {', '.join(REGISTRATION_KINDS)}")
        if kind == "team" and not team_id:
            raise ValidationError("Team registration requires a teamId")

        async def work(uow: UnitOfWork):
            event = await uow.get_event(event_id)
            if not event:
                raise NotFoundError("Event not found")
            if event.type != "offline":
                raise ValidationError("This endpoint is for offline events only")
            if self.clock() > event.startDate:
                raise ConflictError("Registration period has ended")
            if event.find_participant(requester_id):
                raise ConflictError("You are already registered for this event")

            if kind == "team":
                team = await uow.get_team(team_id)
                if not team:
                    raise NotFoundError("Team not found")
                if not team.has_member(requester_id):
                    raise AuthorizationError("Only members of the team can register it")
                if event.find_team_participant(team_id):
                    raise ConflictError("Your team is already registered for this event")
                seats = seats_for_team(event, team)
                participant = Participant(registrationType="team", team=team_id, registeredBy=requester_id)
            else:
                seats = 1
                participant = Participant(registrationType="individual", user=requester_id, registeredBy=requester_id)

            if event.currentParticipants + seats > event.maxParticipants:
                if kind == "team":
                    raise ConflictError("Not enough spots available for the entire team")
                raise ConflictError("No spots available for registration")

            event.participants.append(participant)
            event.currentParticipants += seats
            event.updatedAt = self.clock()
            uow.save_event(event)
            await uow.commit()
            return event

        event = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"Registered {kind} {team_id or requester_id} for event {event_id} "
                    f"({event.currentParticipants}/{event.maxParticipants} seats)")

        return {
            "message": f"Successfully registered {'team' if kind == 'team' else 'participant'} for the event",
            "currentParticipants": event.currentParticipants,
            "maxParticipants": event.maxParticipants,
        }
