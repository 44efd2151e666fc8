"""
Tests for online participation and answer submission
"""
import asyncio
import pytest
from datetime import timedelta

from models.errors import ValidationError, NotFoundError, ConflictError
from services.ScoringEngine import ScoringEngine


@pytest.mark.asyncio
async def test_partial_submission_scores_correct_answers_only(db, seed, clock):
    """One right, one wrong: 10 points, no perfect run"""
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    await engine.participate(event.id, user.id)
    result = await engine.submit(event.id, user.id, [
        {"questionId": "q1", "answer": "Paris"},
        {"questionId": "q2", "answer": "0"},
    ])

    assert result == {"score": 10, "correctAnswers": ["q1"], "perfectRun": False, "teamUpdated": False}
    stored_user = await db.find_user(user.id)
    assert stored_user.score == 10
    assert stored_user.wins == 0


@pytest.mark.asyncio
async def test_perfect_run_adds_a_win(db, seed, clock):
    user = await seed.user("alice", score=5, wins=2)
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    await engine.participate(event.id, user.id)
    result = await engine.submit(event.id, user.id, [
        {"questionId": "q1", "answer": "Paris"},
        {"questionId": "q2", "answer": "42"},
    ])

    assert result["score"] == 20
    assert result["perfectRun"] is True
    stored_user = await db.find_user(user.id)
    assert stored_user.score == 25
    assert stored_user.wins == 3

    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.hasCompleted is True
    assert participant.perfectRun is True
    assert [record.question for record in participant.answers] == ["q1", "q2"]
    assert all(record.submittedAt == clock.now for record in participant.answers)


@pytest.mark.asyncio
async def test_perfect_run_needs_every_question_of_the_event(db, seed, clock):
    """All submitted answers right, but q2 was never answered"""
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    await engine.participate(event.id, user.id)
    result = await engine.submit(event.id, user.id, [{"questionId": "q1", "answer": "Paris"}])

    assert result["score"] == 10
    assert result["perfectRun"] is False
    assert (await db.find_user(user.id)).wins == 0


@pytest.mark.asyncio
async def test_second_submission_is_rejected_and_changes_nothing(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    answers = [{"questionId": "q1", "answer": "Paris"}, {"questionId": "q2", "answer": "0"}]

    await engine.participate(event.id, user.id)
    await engine.submit(event.id, user.id, answers)

    with pytest.raises(ConflictError, match="already completed"):
        await engine.submit(event.id, user.id, answers)

    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.score == 10
    assert len(participant.answers) == 2
    assert (await db.find_user(user.id)).score == 10


@pytest.mark.asyncio
async def test_team_player_submission_updates_team(db, seed, clock):
    captain = await seed.user("cap")
    mate = await seed.user("mate")
    team = await seed.team("Owls", captain, members=[mate], score=7)
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    await engine.participate(event.id, mate.id)
    result = await engine.submit(event.id, mate.id, [
        {"questionId": "q1", "answer": "Paris"},
        {"questionId": "q2", "answer": "42"},
    ])

    assert result["teamUpdated"] is True
    stored_team = await db.find_team(team.id)
    assert stored_team.score == 27
    assert stored_team.wins == 1
    entry = stored_team.eventsParticipated[event.id]
    assert entry.score == 20
    assert entry.participantCount == 2
    assert entry.completedAt == clock.now
    assert (await db.find_user(mate.id)).score == 20


@pytest.mark.asyncio
async def test_team_snapshot_is_upserted_per_event(db, seed, clock):
    captain = await seed.user("cap")
    mate = await seed.user("mate")
    team = await seed.team("Owls", captain, members=[mate])
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    for player, answer in ((captain, "Paris"), (mate, "Lyon")):
        await engine.participate(event.id, player.id)
        await engine.submit(event.id, player.id, [{"questionId": "q1", "answer": answer}])

    stored_team = await db.find_team(team.id)
    assert list(stored_team.eventsParticipated) == [event.id]
    assert stored_team.eventsParticipated[event.id].score == 0
    assert stored_team.score == 10


@pytest.mark.asyncio
async def test_submission_outside_window_is_rejected(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    await engine.participate(event.id, user.id)

    clock.advance(hours=3)
    with pytest.raises(ConflictError):
        await engine.submit(event.id, user.id, [{"questionId": "q1", "answer": "Paris"}])

    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.hasCompleted is False


@pytest.mark.asyncio
async def test_unknown_question_aborts_without_partial_writes(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    await engine.participate(event.id, user.id)

    with pytest.raises(NotFoundError, match="Question missing not found"):
        await engine.submit(event.id, user.id, [
            {"questionId": "q1", "answer": "Paris"},
            {"questionId": "missing", "answer": "x"},
        ])

    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.answers == []
    assert participant.score == 0
    assert (await db.find_user(user.id)).score == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("answers", [
    [],
    None,
    "Paris",
    [{"questionId": "q1"}],
    [{"questionId": "", "answer": "Paris"}],
    [{"questionId": "q1", "answer": "Paris"}, {"questionId": "q1", "answer": "Lyon"}],
])
async def test_malformed_answers_are_rejected(db, seed, clock, answers):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    await engine.participate(event.id, user.id)

    with pytest.raises(ValidationError):
        await engine.submit(event.id, user.id, answers)


@pytest.mark.asyncio
async def test_submit_without_participation_is_not_found(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()

    with pytest.raises(NotFoundError, match="Participant not found"):
        await ScoringEngine(db, clock).submit(event.id, user.id, [{"questionId": "q1", "answer": "Paris"}])


@pytest.mark.asyncio
async def test_missing_user_aborts_the_whole_submission(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    await engine.participate(event.id, user.id)
    del db.collections["users"][user.id]

    with pytest.raises(NotFoundError, match="User not found"):
        await engine.submit(event.id, user.id, [{"questionId": "q1", "answer": "Paris"}])

    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.hasCompleted is False


@pytest.mark.asyncio
async def test_participate_hides_answers_and_is_idempotent(db, seed, clock):
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)

    first = await engine.participate(event.id, user.id)
    await engine.participate(event.id, user.id)

    assert [question["id"] for question in first["questions"]] == ["q1", "q2"]
    assert all("answer" not in question for question in first["questions"])
    assert first["questions"][0]["options"] == ["Paris", "Lyon"]

    stored = await db.find_event(event.id)
    assert len(stored.participants) == 1
    assert stored.currentParticipants == 1
    participant = stored.participants[0]
    assert participant.registrationType == "individual"
    assert participant.registeredBy == user.id
    assert participant.score == 0


@pytest.mark.asyncio
async def test_participate_requires_open_online_event(db, seed, clock):
    user = await seed.user("alice")
    offline = await seed.offline_event()
    upcoming = await seed.online_event(name="Later", starts_in=timedelta(days=2))
    engine = ScoringEngine(db, clock)

    with pytest.raises(ValidationError):
        await engine.participate(offline.id, user.id)
    with pytest.raises(ConflictError):
        await engine.participate(upcoming.id, user.id)
    with pytest.raises(NotFoundError):
        await engine.participate("nope", user.id)


@pytest.mark.asyncio
async def test_racing_submissions_complete_once(db, seed, clock):
    """Two concurrent submits for the same participant: only one is scored"""
    user = await seed.user("alice")
    event = await seed.online_event()
    engine = ScoringEngine(db, clock)
    answers = [{"questionId": "q1", "answer": "Paris"}, {"questionId": "q2", "answer": "42"}]
    await engine.participate(event.id, user.id)

    results = await asyncio.gather(
        engine.submit(event.id, user.id, answers),
        engine.submit(event.id, user.id, answers),
        return_exceptions=True,
    )

    successes = [result for result in results if isinstance(result, dict)]
    conflicts = [result for result in results if isinstance(result, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1

    stored_user = await db.find_user(user.id)
    assert stored_user.score == 20
    assert stored_user.wins == 1
    participant = (await db.find_event(event.id)).find_participant(user.id)
    assert participant.score == 20
    assert len(participant.answers) == 2
