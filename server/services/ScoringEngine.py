from datetime import datetime
from typing import Any, Callable, Dict, List

from config import config
from database.base import DatabaseInterface, UnitOfWork, run_transaction
from helpers.Clock import utc_now
from helpers.Logger import get_logger
from models.models import AnswerRecord, Participant, TeamEventEntry
from models.errors import ValidationError, NotFoundError, ConflictError
from .EventService import sanitize_question

logger = get_logger("services.scoring")


def validate_answers(answers: Any) -> List[Dict[str, str]]:
    """Answers must be a non-empty list of {questionId, answer}, one per question."""
    if not isinstance(answers, list) or not answers:
        raise ValidationError("Invalid answers format")

    seen = set()
    for entry in answers:
        if not isinstance(entry, dict):
            raise ValidationError("Invalid answers format")
        question_id = entry.get("questionId")
        answer = entry.get("answer")
        if not isinstance(question_id, str) or not question_id or not isinstance(answer, str) or not answer:
            raise ValidationError("Invalid answers format")
        if question_id in seen:
            raise ValidationError(f"Question {question_id} answered more than once")
        seen.add(question_id)
    return answers


class ScoringEngine:
    """
    Online participation and answer submission.

    A submission grades every answer against the event's key, stores the
    answers on the participant record, then adds the score (and a win for a
    perfect run) to the user and, for team players, to the team. Event, user
    and team are committed in one unit of work.
    """

    def __init__(self, db: DatabaseInterface, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def participate(self, event_id: str, requester_id: str) -> Dict[str, Any]:
        async def work(uow: UnitOfWork):
            event = await uow.get_event(event_id)
            if not event:
                raise NotFoundError("Event not found")
            if event.type != "online":
                raise ValidationError("This is not an online event")
            if not event.is_open(self.clock()):
                raise ConflictError("Event is not active")

            participant = event.find_participant(requester_id)
            if participant and participant.hasCompleted:
                raise ConflictError("You have already completed this event")
            if not participant:
                event.participants.append(
                    Participant(registrationType="individual", user=requester_id, registeredBy=requester_id)
                )
                event.currentParticipants += 1
                uow.save_event(event)
                await uow.commit()
            return event

        event = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        return {
            "id": event.id,
            "name": event.name,
            "type": event.type,
            "description": event.description,
            "startDate": event.startDate.isoformat(),
            "endDate": event.endDate.isoformat(),
            "questions": [sanitize_question(question) for question in event.questions],
        }

    async def submit(self, event_id: str, requester_id: str, answers: Any) -> Dict[str, Any]:
        async def work(uow: UnitOfWork):
            event = await uow.get_event(event_id)
            if not event:
                raise NotFoundError("Event not found")
            participant = event.find_participant(requester_id)
            if not participant:
                raise NotFoundError("Participant not found")
            if participant.hasCompleted:
                raise ConflictError("You have already completed this event")

            now = self.clock()
            if not event.is_open(now):
                raise ConflictError("Event is not active for submissions")

            total_score = 0
            correct_answers = []
            for entry in validate_answers(answers):
                question_id = entry["questionId"]
                question = event.find_question(question_id)
                if not question:
                    raise NotFoundError(f"Question {question_id} not found")

                is_correct = question.answer == entry["answer"]
                if is_correct:
                    total_score += question.points
                    correct_answers.append(question_id)

                participant.answers.append(AnswerRecord(
                    question=question_id,
                    answer=entry["answer"],
                    isCorrect=is_correct,
                    submittedAt=self.clock(),
                ))

            perfect_run = len(set(correct_answers)) == len(event.questions)
            participant.score = total_score
            participant.perfectRun = perfect_run
            participant.hasCompleted = True
            uow.save_event(event)

            user = await uow.get_user(requester_id)
            if not user:
                raise NotFoundError("User not found")
            user.score += total_score
            if perfect_run:
                user.wins += 1
            user.updatedAt = now
            uow.save_user(user)

            team_updated = False
            if user.participationType == "team" and user.teamId:
                team = await uow.get_team(user.teamId)
                if team:
                    team.score += total_score
                    if perfect_run:
                        team.wins += 1
                    team.eventsParticipated[event.id] = TeamEventEntry(
                        score=total_score,
                        participantCount=len(team.members),
                        completedAt=now,
                    )
                    team.updatedAt = now
                    uow.save_team(team)
                    team_updated = True
                else:
                    logger.warning(f"User {user.id} references missing team {user.teamId}")

            await uow.commit()
            return {
                "score": total_score,
                "correctAnswers": correct_answers,
                "perfectRun": perfect_run,
                "teamUpdated": team_updated,
            }

        result = await run_transaction(self.db, work, config.TRANSACTION_RETRIES)
        logger.info(f"User {requester_id} scored {result['score']} on event {event_id}"
                    f"{' (perfect run)' if result['perfectRun'] else ''}")
        return result
