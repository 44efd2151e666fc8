from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime

from helpers.Clock import utc_now, ensure_utc, new_id
from .errors import ConflictError

EventType = Literal["online", "offline"]
RegistrationType = Literal["individual", "team"]
Role = Literal["admin", "user"]


class Embedded(BaseModel):
    """Sub-document with its own id, stored as `_id` like the top-level documents."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")


class Document(Embedded):
    """Top-level aggregate. `version` backs compare-and-save in the unit of work."""
    version: int = 0
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Question(Embedded):
    question: str
    options: List[str]
    answer: str
    points: int = 10


class AnswerRecord(BaseModel):
    question: str
    answer: str
    isCorrect: bool
    submittedAt: datetime = Field(default_factory=utc_now)


class Participant(Embedded):
    registrationType: RegistrationType
    user: Optional[str] = None
    team: Optional[str] = None
    registeredBy: str
    score: int = 0
    perfectRun: bool = False
    hasCompleted: bool = False
    answers: List[AnswerRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_reference(self):
        if self.registrationType == "individual" and (not self.user or self.team):
            raise ValueError("Individual participants reference a user only")
        if self.registrationType == "team" and (not self.team or self.user):
            raise ValueError("Team participants reference a team only")
        return self

    @property
    def last_submitted_at(self) -> Optional[datetime]:
        if not self.answers:
            return None
        return self.answers[-1].submittedAt


class Event(Document):
    name: str
    type: EventType
    description: str
    location: Optional[str] = None
    startDate: datetime
    endDate: datetime
    questions: List[Question] = Field(default_factory=list)
    maxParticipants: int = Field(gt=0)
    currentParticipants: int = Field(default=0, ge=0)
    teamSize: int = Field(default=5, gt=0)
    participants: List[Participant] = Field(default_factory=list)

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.startDate >= self.endDate:
            raise ValueError("End date must be after start date")
        return self

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def find_participant(self, user_id: str) -> Optional[Participant]:
        """Individual participant record of a user, if any."""
        for participant in self.participants:
            if participant.user == user_id:
                return participant
        return None

    def find_team_participant(self, team_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.team == team_id:
                return participant
        return None

    def is_open(self, now: datetime) -> bool:
        return self.startDate <= now <= self.endDate

    def check_invariants(self):
        if self.currentParticipants > self.maxParticipants:
            raise ConflictError("Maximum participants limit exceeded")


class User(Document):
    username: str
    email: str
    password: str
    role: Role = "user"
    participationType: RegistrationType
    teamId: Optional[str] = None
    isCaptain: bool = False
    score: int = 0
    wins: int = 0


class TeamMember(BaseModel):
    name: str
    email: Optional[str] = None
    user: Optional[str] = None


class TeamEventEntry(BaseModel):
    score: int
    participantCount: int
    completedAt: datetime


class Team(Document):
    name: str
    captain: str
    members: List[TeamMember] = Field(default_factory=list)
    score: int = 0
    wins: int = 0
    eventsParticipated: Dict[str, TeamEventEntry] = Field(default_factory=dict)

    def has_member(self, user_id: str) -> bool:
        if self.captain == user_id:
            return True
        return any(member.user == user_id for member in self.members)

    def ensure_captain(self, captain: User):
        """The captain is always a member; put them first when missing."""
        for member in self.members:
            if member.user == captain.id or (member.email and member.email == captain.email):
                member.user = captain.id
                return
        self.members.insert(0, TeamMember(name=captain.username, email=captain.email, user=captain.id))
