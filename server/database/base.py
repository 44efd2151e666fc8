"""
Storage interface shared by the MongoDB and in-memory backends.

Aggregates (events, users, teams) are read directly for projections and
written through a UnitOfWork, which stages every change and commits them
together or not at all.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from models.models import Event, Team, User
from models.errors import TransactionFailure
from helpers.Logger import get_logger

logger = get_logger("database")

T = TypeVar("T")


class UnitOfWork(ABC):
    """
    One atomic transaction across the Event, User and Team aggregates.

    Reads go through the transaction. `add_*` stages an insert, `save_*`
    stages a compare-and-save against the version that was read. Nothing is
    visible to other callers until `commit()` returns; leaving the context
    without committing rolls everything back.
    """

    def __init__(self):
        self._inserts: Dict[str, Dict[str, Any]] = {"events": {}, "users": {}, "teams": {}}
        self._saves: Dict[str, Dict[str, Any]] = {"events": {}, "users": {}, "teams": {}}
        self.committed = False

    async def __aenter__(self):
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if not self.committed:
                await self.rollback()
        finally:
            await self.end()
        return False

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def add_user(self, user: User):
        self._inserts["users"][user.id] = user

    def add_team(self, team: Team):
        self._inserts["teams"][team.id] = team

    def save_event(self, event: Event):
        self._saves["events"][event.id] = event

    def save_user(self, user: User):
        if user.id in self._inserts["users"]:
            return
        self._saves["users"][user.id] = user

    def save_team(self, team: Team):
        if team.id in self._inserts["teams"]:
            return
        self._saves["teams"][team.id] = team

    def staged_writes(self):
        """Yield (collection, expected_version or None for inserts, document)."""
        for collection, docs in self._inserts.items():
            for model in docs.values():
                yield collection, None, model.to_document()
        for collection, docs in self._saves.items():
            for model in docs.values():
                if isinstance(model, Event):
                    model.check_invariants()
                expected = model.version
                document = model.to_document()
                document["version"] = expected + 1
                yield collection, expected, document

    async def commit(self):
        writes = list(self.staged_writes())
        await self._apply(writes)
        self.committed = True

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def begin(self):
        pass

    @abstractmethod
    async def end(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass

    @abstractmethod
    async def _apply(self, writes: List[tuple]):
        """Write every staged document atomically or raise TransactionFailure."""
        pass

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[Event]:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        pass


class DatabaseInterface(ABC):
    """Abstract interface for tournament storage."""

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def connect(self) -> None:
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Create indexes. Safe to call more than once."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    @abstractmethod
    def unit_of_work(self) -> UnitOfWork:
        pass

    # =========================================================================
    # EVENTS
    # =========================================================================

    @abstractmethod
    async def insert_event(self, event: Event) -> None:
        pass

    @abstractmethod
    async def delete_event(self, event_id: str) -> bool:
        pass

    @abstractmethod
    async def find_event(self, event_id: str) -> Optional[Event]:
        pass

    @abstractmethod
    async def find_events(self, event_type: Optional[str] = None, search: Optional[str] = None) -> List[Event]:
        """Events sorted by startDate ascending; `search` matches name or description, case-insensitive."""
        pass

    @abstractmethod
    async def find_events_for_user(self, user_id: str) -> List[Event]:
        """Events holding an individual participant record for the user."""
        pass

    # =========================================================================
    # USERS AND TEAMS
    # =========================================================================

    @abstractmethod
    async def insert_user(self, user: User) -> None:
        pass

    @abstractmethod
    async def find_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def find_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_users(self, user_ids: List[str]) -> Dict[str, User]:
        pass

    @abstractmethod
    async def list_users(self, participation_type: Optional[str] = None) -> List[User]:
        """Users by cumulative score descending, then creation order."""
        pass

    @abstractmethod
    async def find_team(self, team_id: str) -> Optional[Team]:
        pass

    @abstractmethod
    async def find_team_by_name(self, name: str) -> Optional[Team]:
        """Case-insensitive exact name match."""
        pass

    @abstractmethod
    async def find_teams(self, team_ids: List[str]) -> Dict[str, Team]:
        pass

    @abstractmethod
    async def list_teams(self) -> List[Team]:
        """Teams by cumulative score descending, then creation order."""
        pass


async def run_transaction(db: DatabaseInterface, work: Callable[[UnitOfWork], Awaitable[T]], retries: int = 3) -> T:
    """
    Run `work` inside a fresh unit of work, retrying the whole operation when
    the commit is aborted. Any other error propagates after rollback.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            async with db.unit_of_work() as uow:
                return await work(uow)
        except TransactionFailure as e:
            if attempt > retries:
                logger.error(f"Transaction failed after {attempt} attempts: {e.message}")
                raise
            logger.warning(f"Transaction aborted (attempt {attempt}), retrying: {e.message}")
