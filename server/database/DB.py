import re
import socket
from typing import Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from fastapi import Request

from config.config import MONGODB_URI, CLUSTER_NAME, DATABASE_NAME
from models.models import Event, Team, User
from models.errors import TransactionFailure
from helpers.Logger import get_logger
from .base import DatabaseInterface, UnitOfWork

logger = get_logger("database.mongo")

# Team names are unique ignoring case
TEAM_NAME_COLLATION = {"locale": "en", "strength": 2}


def get_db(request: Request):
    """Dependency to get database instance from app state"""
    return request.app.state.db


class MongoUnitOfWork(UnitOfWork):
    """Unit of work backed by a MongoDB multi-document transaction."""

    def __init__(self, database: "Database"):
        super().__init__()
        self._database = database
        self._session = None

    async def begin(self):
        self._session = await self._database.client.start_session()
        self._session.start_transaction()

    async def end(self):
        if self._session is not None:
            await self._session.end_session()
            self._session = None

    async def rollback(self):
        if self._session is not None and self._session.in_transaction:
            await self._session.abort_transaction()

    async def _find(self, collection_name, document_id):
        try:
            return await self._database.db[collection_name].find_one({"_id": document_id}, session=self._session)
        except PyMongoError as e:
            raise TransactionFailure(f"Read failed: {str(e)}")

    async def get_event(self, event_id: str) -> Optional[Event]:
        document = await self._find("events", event_id)
        return Event.model_validate(document) if document else None

    async def get_user(self, user_id: str) -> Optional[User]:
        document = await self._find("users", user_id)
        return User.model_validate(document) if document else None

    async def get_team(self, team_id: str) -> Optional[Team]:
        document = await self._find("teams", team_id)
        return Team.model_validate(document) if document else None

    async def _apply(self, writes):
        try:
            for collection_name, expected, document in writes:
                collection = self._database.db[collection_name]
                if expected is None:
                    await collection.insert_one(document, session=self._session)
                    continue
                result = await collection.replace_one(
                    {"_id": document["_id"], "version": expected},
                    document,
                    session=self._session,
                )
                if result.matched_count == 0:
                    raise TransactionFailure(f"Concurrent update on {collection_name} {document['_id']}")
            await self._session.commit_transaction()
        except TransactionFailure:
            await self.rollback()
            raise
        except PyMongoError as e:
            await self.rollback()
            raise TransactionFailure(f"Commit failed: {str(e)}")


class Database(DatabaseInterface):
    def __init__(self, uri: str = MONGODB_URI, database_name: str = DATABASE_NAME):
        self.MONGO_URI = uri
        self.database_name = database_name
        self.client = None
        self.db = None

    def connect(self):
        self.client = AsyncIOMotorClient(self.MONGO_URI, tz_aware=True)
        self.db = self.client[self.database_name]
        logger.info(f"Connected to MongoDB database '{self.database_name}' on host {socket.gethostname()}")

    def check_connection(self):
        if not CLUSTER_NAME:
            return
        hostname = f"{CLUSTER_NAME}.mongodb.net"
        try:
            ip = socket.gethostbyname(hostname)
            logger.info(f"DNS resolution successful: {hostname} -> {ip}")
        except socket.gaierror as dns_error:
            logger.warning(f"DNS resolution failed for {hostname}: {dns_error}. Continuing, connection may still work")

    async def initialize(self):
        await self.db.events.create_index([("startDate", ASCENDING), ("endDate", ASCENDING)])
        await self.db.events.create_index("participants.user")
        await self.db.events.create_index("participants.team")
        await self.db.users.create_index("username", unique=True)
        await self.db.users.create_index("email", unique=True)
        await self.db.users.create_index([("score", DESCENDING)])
        await self.db.teams.create_index("name", unique=True, collation=TEAM_NAME_COLLATION)
        await self.db.teams.create_index([("score", DESCENDING)])

    def close(self):
        if self.client is not None:
            self.client.close()
            self.client = None

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"MongoDB ping failed: {e}")
            return False

    def unit_of_work(self) -> UnitOfWork:
        return MongoUnitOfWork(self)

    # Events

    async def insert_event(self, event: Event):
        await self.db.events.insert_one(event.to_document())

    async def delete_event(self, event_id: str) -> bool:
        result = await self.db.events.delete_one({"_id": event_id})
        return result.deleted_count > 0

    async def find_event(self, event_id: str) -> Optional[Event]:
        document = await self.db.events.find_one({"_id": event_id})
        return Event.model_validate(document) if document else None

    async def find_events(self, event_type=None, search=None) -> List[Event]:
        query = {}
        if event_type:
            query["type"] = event_type
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        cursor = self.db.events.find(query).sort("startDate", ASCENDING)
        return [Event.model_validate(document) async for document in cursor]

    async def find_events_for_user(self, user_id: str) -> List[Event]:
        cursor = self.db.events.find({"participants.user": user_id}).sort("startDate", ASCENDING)
        return [Event.model_validate(document) async for document in cursor]

    # Users and teams

    async def insert_user(self, user: User):
        await self.db.users.insert_one(user.to_document())

    async def find_user(self, user_id: str) -> Optional[User]:
        document = await self.db.users.find_one({"_id": user_id})
        return User.model_validate(document) if document else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        document = await self.db.users.find_one(
            {"email": {"$regex": f"^{re.escape(email)}$", "$options": "i"}}
        )
        return User.model_validate(document) if document else None

    async def find_user_by_username(self, username: str) -> Optional[User]:
        document = await self.db.users.find_one({"username": username})
        return User.model_validate(document) if document else None

    async def find_users(self, user_ids: List[str]) -> Dict[str, User]:
        cursor = self.db.users.find({"_id": {"$in": list(user_ids)}})
        return {document["_id"]: User.model_validate(document) async for document in cursor}

    async def list_users(self, participation_type=None) -> List[User]:
        query = {"participationType": participation_type} if participation_type else {}
        cursor = self.db.users.find(query).sort([("score", DESCENDING), ("createdAt", ASCENDING)])
        return [User.model_validate(document) async for document in cursor]

    async def find_team(self, team_id: str) -> Optional[Team]:
        document = await self.db.teams.find_one({"_id": team_id})
        return Team.model_validate(document) if document else None

    async def find_team_by_name(self, name: str) -> Optional[Team]:
        document = await self.db.teams.find_one(
            {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
        )
        return Team.model_validate(document) if document else None

    async def find_teams(self, team_ids: List[str]) -> Dict[str, Team]:
        cursor = self.db.teams.find({"_id": {"$in": list(team_ids)}})
        return {document["_id"]: Team.model_validate(document) async for document in cursor}

    async def list_teams(self) -> List[Team]:
        cursor = self.db.teams.find({}).sort([("score", DESCENDING), ("createdAt", ASCENDING)])
        return [Team.model_validate(document) async for document in cursor]
