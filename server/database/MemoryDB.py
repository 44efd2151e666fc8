"""
Process-local storage backend.

Documents are kept as plain dicts and deep-copied on every read and write, so
callers never share state with the store. Commits are serialized by a single
asyncio.Lock and apply only if every saved document still has the version that
was read, which gives the same compare-and-save guarantee as the MongoDB
backend. Used by the test suite and for local development without a replica set.
"""

import asyncio
import copy
from typing import Dict, List, Optional

from models.models import Event, Team, User
from models.errors import TransactionFailure
from .base import DatabaseInterface, UnitOfWork


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, database: "MemoryDatabase"):
        super().__init__()
        self._database = database

    async def begin(self):
        pass

    async def end(self):
        pass

    async def rollback(self):
        # Nothing reaches the store before _apply
        pass

    async def _read(self, collection_name, document_id):
        await asyncio.sleep(0)
        return self._database.read(collection_name, document_id)

    async def get_event(self, event_id: str) -> Optional[Event]:
        document = await self._read("events", event_id)
        return Event.model_validate(document) if document else None

    async def get_user(self, user_id: str) -> Optional[User]:
        document = await self._read("users", user_id)
        return User.model_validate(document) if document else None

    async def get_team(self, team_id: str) -> Optional[Team]:
        document = await self._read("teams", team_id)
        return Team.model_validate(document) if document else None

    async def _apply(self, writes):
        async with self._database.lock:
            store = self._database.collections
            for collection_name, expected, document in writes:
                current = store[collection_name].get(document["_id"])
                if expected is None and current is not None:
                    raise TransactionFailure(f"Duplicate key on {collection_name} {document['_id']}")
                if expected is not None and (current is None or current["version"] != expected):
                    raise TransactionFailure(f"Concurrent update on {collection_name} {document['_id']}")
            for collection_name, _, document in writes:
                store[collection_name][document["_id"]] = copy.deepcopy(document)


class MemoryDatabase(DatabaseInterface):
    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {"events": {}, "users": {}, "teams": {}}
        self.lock = asyncio.Lock()

    def connect(self):
        pass

    async def initialize(self):
        pass

    def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    def unit_of_work(self) -> UnitOfWork:
        return MemoryUnitOfWork(self)

    def read(self, collection_name: str, document_id: str) -> Optional[dict]:
        document = self.collections[collection_name].get(document_id)
        return copy.deepcopy(document) if document is not None else None

    def _all(self, collection_name: str) -> List[dict]:
        return [copy.deepcopy(document) for document in self.collections[collection_name].values()]

    def _insert(self, collection_name: str, document: dict):
        self.collections[collection_name][document["_id"]] = copy.deepcopy(document)

    # Events

    async def insert_event(self, event: Event):
        self._insert("events", event.to_document())

    async def delete_event(self, event_id: str) -> bool:
        return self.collections["events"].pop(event_id, None) is not None

    async def find_event(self, event_id: str) -> Optional[Event]:
        document = self.read("events", event_id)
        return Event.model_validate(document) if document else None

    async def find_events(self, event_type=None, search=None) -> List[Event]:
        events = [Event.model_validate(document) for document in self._all("events")]
        if event_type:
            events = [event for event in events if event.type == event_type]
        if search:
            needle = search.lower()
            events = [
                event for event in events
                if needle in event.name.lower() or needle in event.description.lower()
            ]
        return sorted(events, key=lambda event: event.startDate)

    async def find_events_for_user(self, user_id: str) -> List[Event]:
        events = [Event.model_validate(document) for document in self._all("events")]
        return sorted(
            [event for event in events if event.find_participant(user_id)],
            key=lambda event: event.startDate,
        )

    # Users and teams

    async def insert_user(self, user: User):
        self._insert("users", user.to_document())

    async def find_user(self, user_id: str) -> Optional[User]:
        document = self.read("users", user_id)
        return User.model_validate(document) if document else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        for document in self._all("users"):
            if document["email"].lower() == email.lower():
                return User.model_validate(document)
        return None

    async def find_user_by_username(self, username: str) -> Optional[User]:
        for document in self._all("users"):
            if document["username"] == username:
                return User.model_validate(document)
        return None

    async def find_users(self, user_ids: List[str]) -> Dict[str, User]:
        users = {}
        for user_id in user_ids:
            document = self.read("users", user_id)
            if document:
                users[user_id] = User.model_validate(document)
        return users

    async def list_users(self, participation_type=None) -> List[User]:
        users = [User.model_validate(document) for document in self._all("users")]
        if participation_type:
            users = [user for user in users if user.participationType == participation_type]
        return sorted(users, key=lambda user: (-user.score, user.createdAt))

    async def find_team(self, team_id: str) -> Optional[Team]:
        document = self.read("teams", team_id)
        return Team.model_validate(document) if document else None

    async def find_team_by_name(self, name: str) -> Optional[Team]:
        for document in self._all("teams"):
            if document["name"].lower() == name.lower():
                return Team.model_validate(document)
        return None

    async def find_teams(self, team_ids: List[str]) -> Dict[str, Team]:
        teams = {}
        for team_id in team_ids:
            document = self.read("teams", team_id)
            if document:
                teams[team_id] = Team.model_validate(document)
        return teams

    async def list_teams(self) -> List[Team]:
        teams = [Team.model_validate(document) for document in self._all("teams")]
        return sorted(teams, key=lambda team: (-team.score, team.createdAt))
