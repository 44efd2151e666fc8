from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from pydantic import ValidationError as PydanticValidationError

from config import config
from database.base import DatabaseInterface, run_transaction
from helpers.Clock import utc_now, ensure_utc
from helpers.Logger import get_logger
from models.models import Event, Question
from models.errors import ValidationError, NotFoundError, ConflictError

logger = get_logger("services.events")

EVENT_TYPES = ("online", "offline")
EVENT_STATUSES = ("upcoming", "active", "completed")


def event_status(event: Event, now: datetime) -> str:
    """Status is derived from the event window, never stored."""
    if now < event.startDate:
        return "upcoming"
    if now <= event.endDate:
        return "active"
    return "completed"


def seats_taken(event: Event) -> int:
    return sum(event.teamSize if participant.team else 1 for participant in event.participants)


def sanitize_question(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "question": question.question,
        "options": list(question.options),
        "points": question.points,
    }


def serialize_event(event: Event, now: datetime, include_answers: bool = False) -> Dict[str, Any]:
    data = event.model_dump(mode="json", exclude={"version"})
    data["status"] = event_status(event, now)
    data["currentParticipants"] = seats_taken(event)
    if not include_answers:
        data["questions"] = [sanitize_question(question) for question in event.questions]
    return data


def _parse_date(value, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field_name}")


def _validate_questions(questions) -> List[Question]:
    if not questions:
        raise ValidationError("Online events require questions")

    validated = []
    for question in questions:
        text = question.get("question")
        answer = question.get("answer")
        options = question.get("options") or []
        if not text or not answer or not options:
            raise ValidationError("Invalid question format. Each question must have question text, answer, and options")
        if len(options) < 2 or len(set(options)) != len(options):
            raise ValidationError("Each question needs at least two distinct options")
        if answer not in options:
            raise ValidationError("Answer must be one of the options provided")
        validated.append(Question(question=text, options=list(options), answer=answer, points=config.QUESTION_POINTS))
    return validated


class EventService:
    def __init__(self, db: DatabaseInterface, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def create_event(self, data: Dict[str, Any]) -> Event:
        name = data.get("name")
        event_type = data.get("type")
        description = data.get("description")
        location = data.get("location")

        if not name or not event_type or not description or not data.get("startDate") or not data.get("endDate"):
            raise ValidationError("Missing required fields")
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Event type must be one of {', '.join(EVENT_TYPES)}")

        start = _parse_date(data["startDate"], "startDate")
        end = _parse_date(data["endDate"], "endDate")
        if start >= end:
            raise ValidationError("End date must be after start date")
        if start < self.clock():
            raise ValidationError("Start date cannot be in the past")

        questions = []
        max_participants = config.DEFAULT_MAX_PARTICIPANTS
        if event_type == "online":
            questions = _validate_questions(data.get("questions"))
        else:
            if not location:
                raise ValidationError("Offline events require a location")
            max_participants = data.get("maxParticipants")
            if not max_participants or max_participants <= 0:
                raise ValidationError("Offline events require a valid maximum number of participants")

        fields = {
            "name": name,
            "type": event_type,
            "description": description,
            "location": location,
            "startDate": start,
            "endDate": end,
            "questions": questions,
            "maxParticipants": max_participants,
            "currentParticipants": 0,
        }
        if data.get("teamSize") is not None:
            fields["teamSize"] = data["teamSize"]

        try:
            event = Event(**fields)
        except PydanticValidationError as e:
            raise ValidationError(str(e))

        await self.db.insert_event(event)
        logger.info(f"Created {event.type} event '{event.name}' ({event.id})")
        return event

    async def list_events(self, event_type: Optional[str] = None, status: Optional[str] = None,
                          search: Optional[str] = None, include_answers: bool = False) -> List[Dict[str, Any]]:
        if event_type and event_type not in EVENT_TYPES:
            raise ValidationError(f"Event type must be one of {', '.join(EVENT_TYPES)}")
        if status and status not in EVENT_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(EVENT_STATUSES)}")

        now = self.clock()
        events = await self.db.find_events(event_type=event_type, search=search)
        result = []
        for event in events:
            if status and event_status(event, now) != status:
                continue
            result.append(serialize_event(event, now, include_answers))
        return result

    async def get_event(self, event_id: str, include_answers: bool = False) -> Dict[str, Any]:
        event = await self.db.find_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return serialize_event(event, self.clock(), include_answers)

    async def update_event(self, event_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not changes:
            raise ValidationError("No fields to update")

        async def work(uow):
            event = await uow.get_event(event_id)
            if not event:
                raise NotFoundError("Event not found")

            fields = event.model_dump()
            for key in ("name", "description", "location", "maxParticipants", "teamSize"):
                if key in changes:
                    fields[key] = changes[key]
            for key in ("startDate", "endDate"):
                if key in changes:
                    fields[key] = _parse_date(changes[key], key)

            try:
                updated = Event(**fields)
            except PydanticValidationError as e:
                raise ValidationError(str(e))
            updated.currentParticipants = seats_taken(updated)
            if updated.currentParticipants > updated.maxParticipants:
                raise ConflictError("Capacity cannot drop below the seats already taken")
            updated.updatedAt = self.clock()

            uow.save_event(updated)
            await uow.commit()
            return updated

        event = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"Updated event {event_id}: {', '.join(sorted(changes))}")
        return serialize_event(event, self.clock(), include_answers=True)

    async def delete_event(self, event_id: str):
        if not await self.db.delete_event(event_id):
            raise NotFoundError("Event not found")
        logger.info(f"Deleted event {event_id}")
