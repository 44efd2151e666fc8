from typing import Any, Dict, List

from database.base import DatabaseInterface
from models.models import Team
from models.errors import NotFoundError


def dense_rank(rows: List[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    """Assign 1-based dense ranks to rows already sorted by `key` descending."""
    rank = 0
    previous = None
    for row in rows:
        if row[key] != previous:
            rank += 1
            previous = row[key]
        row["rank"] = rank
    return rows


def average_event_score(team: Team) -> float:
    if not team.eventsParticipated:
        return 0
    return sum(entry.score for entry in team.eventsParticipated.values()) / len(team.eventsParticipated)


class StandingsEngine:
    """Read-only leaderboards derived from stored aggregates."""

    def __init__(self, db: DatabaseInterface):
        self.db = db

    async def _load_event(self, event_id: str):
        event = await self.db.find_event(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    async def event_leaderboard(self, event_id: str) -> Dict[str, Any]:
        event = await self._load_event(event_id)
        users = await self.db.find_users([p.user for p in event.participants if p.user])
        teams = await self.db.find_teams([p.team for p in event.participants if p.team])

        leaderboard = []
        for position, participant in enumerate(sorted(event.participants, key=lambda p: -p.score), start=1):
            if participant.user:
                user = users.get(participant.user)
                name = user.username if user else None
            else:
                team = teams.get(participant.team)
                name = team.name if team else None
            completed_at = participant.last_submitted_at
            leaderboard.append({
                "rank": position,
                "registrationType": participant.registrationType,
                "username": name,
                "score": participant.score,
                "perfectRun": participant.perfectRun,
                "completedAt": completed_at.isoformat() if completed_at else None,
            })

        return {"eventName": event.name, "leaderboard": leaderboard}

    async def team_standings_for_event(self, event_id: str) -> Dict[str, Any]:
        """
        Group participants by team and rank teams by summed score.

        Team registrations count for their team directly; individual records
        count for the team their user belongs to, if any.
        """
        event = await self._load_event(event_id)
        users = await self.db.find_users([p.user for p in event.participants if p.user])

        grouped: Dict[str, Dict[str, Any]] = {}
        for participant in event.participants:
            team_id = participant.team
            if not team_id and participant.user in users:
                team_id = users[participant.user].teamId
            if not team_id:
                continue
            entry = grouped.setdefault(team_id, {
                "teamId": team_id,
                "totalScore": 0,
                "perfectRuns": 0,
                "participantCount": 0,
            })
            entry["totalScore"] += participant.score
            if participant.perfectRun:
                entry["perfectRuns"] += 1
            entry["participantCount"] += 1

        teams = await self.db.find_teams(list(grouped))
        standings = sorted(grouped.values(), key=lambda entry: -entry["totalScore"])
        for entry in standings:
            team = teams.get(entry["teamId"])
            entry["teamName"] = team.name if team else None
            entry["averageScore"] = entry["totalScore"] / entry["participantCount"]

        return {"eventName": event.name, "teamStandings": dense_rank(standings, "totalScore")}

    async def users_leaderboard(self) -> List[Dict[str, Any]]:
        users = await self.db.list_users(participation_type="individual")
        return [
            {
                "rank": position,
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "score": user.score,
                "wins": user.wins,
                "participationType": user.participationType,
            }
            for position, user in enumerate(users, start=1)
        ]

    async def teams_leaderboard(self) -> List[Dict[str, Any]]:
        teams = await self.db.list_teams()
        return [
            {
                "rank": position,
                "id": team.id,
                "name": team.name,
                "captain": team.captain,
                "score": team.score,
                "wins": team.wins,
                "memberCount": len(team.members),
            }
            for position, team in enumerate(teams, start=1)
        ]

    async def global_leaderboard(self) -> List[Dict[str, Any]]:
        """Users and teams merged into one ranking; ties keep users first, then list order."""
        combined = [
            {"kind": "user", "id": row["id"], "name": row["username"], "score": row["score"], "wins": row["wins"]}
            for row in await self.users_leaderboard()
        ]
        combined += [
            {"kind": "team", "id": row["id"], "name": row["name"], "score": row["score"], "wins": row["wins"]}
            for row in await self.teams_leaderboard()
        ]
        combined.sort(key=lambda row: -row["score"])
        for position, row in enumerate(combined, start=1):
            row["rank"] = position
        return combined

    async def user_event_history(self, user_id: str) -> List[Dict[str, Any]]:
        history = []
        for event in await self.db.find_events_for_user(user_id):
            participant = event.find_participant(user_id)
            history.append({
                "eventId": event.id,
                "eventName": event.name,
                "type": event.type,
                "date": event.startDate.isoformat(),
                "score": participant.score,
                "perfectRun": participant.perfectRun,
                "status": "completed" if participant.hasCompleted else "registered",
            })
        return history
