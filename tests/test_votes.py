import asyncio
import itertools
from datetime import datetime

import pytest

from learnify.courses import votes
from learnify.courses.votes import UPVOTE, DOWNVOTE, apply_vote, cast_vote
from learnify.errors import NotFoundError, BusyError


@pytest.mark.parametrize("current,requested,expected,delta", [
    (None, UPVOTE, UPVOTE, 1),
    (None, DOWNVOTE, DOWNVOTE, -1),
    (None, None, None, 0),
    (UPVOTE, UPVOTE, None, -1),
    (UPVOTE, DOWNVOTE, DOWNVOTE, -2),
    (UPVOTE, None, None, -1),
    (DOWNVOTE, UPVOTE, UPVOTE, 2),
    (DOWNVOTE, DOWNVOTE, None, 1),
    (DOWNVOTE, None, None, 1),
])
def test_vote_transitions(current, requested, expected, delta):
    up = ["other-up"] + (["u"] if current == UPVOTE else [])
    down = ["other-down"] + (["u"] if current == DOWNVOTE else [])
    before = len(up) - len(down)

    outcome = apply_vote(up, down, "u", requested)

    assert outcome.previous == current
    assert outcome.user_vote == expected
    assert outcome.votes - before == delta


def test_apply_vote_does_not_mutate_inputs():
    up, down = ["a"], []
    apply_vote(up, down, "a", DOWNVOTE)
    assert up == ["a"]
    assert down == []


@pytest.mark.parametrize("sequence", list(itertools.product(
    [("a", UPVOTE), ("a", DOWNVOTE), ("a", None), ("b", UPVOTE), ("b", DOWNVOTE)],
    repeat=4,
)))
def test_tally_matches_voter_sets_for_any_sequence(sequence):
    up, down = [], []
    for user, vote_type in sequence:
        outcome = apply_vote(up, down, user, vote_type)
        up, down = outcome.upvoters, outcome.downvoters

        assert outcome.votes == len(up) - len(down)
        assert not set(up) & set(down)
        assert len(up) == len(set(up))
        assert len(down) == len(set(down))


def test_same_vote_twice_returns_to_no_vote():
    first = apply_vote([], [], "u", UPVOTE)
    second = apply_vote(first.upvoters, first.downvoters, "u", UPVOTE)
    assert second.user_vote is None
    assert second.votes == 0


async def insert_discussion(db, discussion_id="DISC_1"):
    await db.discussions.insert_one({
        "discussion_id": discussion_id, "title": "T", "content": "C", "author_id": "author",
        "votes": 0, "upvoters": [], "downvoters": [], "version": 0, "created_at": datetime.utcnow(),
    })


async def insert_reply(db, reply_id, discussion_id="DISC_1"):
    await db.discussion_replies.insert_one({
        "reply_id": reply_id, "discussion_id": discussion_id, "content": "R", "author_id": "author",
        "votes": 0, "upvoters": [], "downvoters": [], "version": 0, "created_at": datetime.utcnow(),
    })


async def test_upvote_downvote_downvote_sequence(db):
    await insert_discussion(db)

    first = await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)
    assert (first.votes, first.user_vote) == (1, UPVOTE)

    second = await cast_vote(db, "discussion", "DISC_1", "u", DOWNVOTE)
    assert (second.votes, second.user_vote) == (-1, DOWNVOTE)
    ledger = await db.discussion_votes.find_one({"user_id": "u", "discussion_id": "DISC_1"})
    assert ledger["vote_type"] == DOWNVOTE

    third = await cast_vote(db, "discussion", "DISC_1", "u", DOWNVOTE)
    assert (third.votes, third.user_vote) == (0, None)

    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["votes"] == 0
    assert doc["upvoters"] == [] and doc["downvoters"] == []
    assert doc["version"] == 3
    assert await db.discussion_votes.count_documents({"user_id": "u"}) == 0


async def test_ledger_keeps_one_row_per_user_and_target(db):
    await insert_discussion(db)
    await insert_reply(db, "RPL_1")
    await insert_reply(db, "RPL_2")

    await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)
    await cast_vote(db, "reply", "RPL_1", "u", UPVOTE, scope={"discussion_id": "DISC_1"})
    await cast_vote(db, "reply", "RPL_2", "u", DOWNVOTE, scope={"discussion_id": "DISC_1"})
    await cast_vote(db, "reply", "RPL_2", "u", UPVOTE, scope={"discussion_id": "DISC_1"})

    assert await db.discussion_votes.count_documents({"user_id": "u"}) == 3
    row = await db.discussion_votes.find_one({"user_id": "u", "reply_id": "RPL_2"})
    assert row["vote_type"] == UPVOTE
    assert "discussion_id" not in row


async def test_vote_on_missing_target(db):
    with pytest.raises(NotFoundError):
        await cast_vote(db, "discussion", "DISC_MISSING", "u", UPVOTE)


async def test_reply_vote_scoped_to_its_discussion(db):
    await insert_discussion(db)
    await insert_discussion(db, "DISC_2")
    await insert_reply(db, "RPL_1", "DISC_2")

    with pytest.raises(NotFoundError):
        await cast_vote(db, "reply", "RPL_1", "u", UPVOTE, scope={"discussion_id": "DISC_1"})

    reply = await db.discussion_replies.find_one({"reply_id": "RPL_1"})
    assert reply["votes"] == 0

# ==================== CONCURRENCY ====================

async def test_vote_retries_after_concurrent_change(db, monkeypatch):
    await insert_discussion(db)
    cls = type(db.discussions)
    original = cls.update_one
    interleaved = []

    async def racing_update(self, filter, update, *args, **kwargs):
        if self.name == "discussions" and "version" in filter and not interleaved:
            # Another voter lands between the read and the write
            interleaved.append(await original(
                self, {"discussion_id": "DISC_1"},
                {"$push": {"upvoters": "other"}, "$inc": {"votes": 1, "version": 1}}
            ))
        return await original(self, filter, update, *args, **kwargs)

    monkeypatch.setattr(cls, "update_one", racing_update)

    outcome = await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)

    assert outcome.upvoters == ["other", "u"]
    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["votes"] == 2 == len(doc["upvoters"]) - len(doc["downvoters"])
    assert doc["version"] == 2
    row = await db.discussion_votes.find_one({"user_id": "u", "discussion_id": "DISC_1"})
    assert (row["vote_type"], row["target_version"]) == (UPVOTE, 2)


async def test_vote_gives_up_when_target_keeps_changing(db, monkeypatch):
    monkeypatch.setattr(votes, "CAS_MAX_RETRIES", 3)
    await insert_discussion(db)
    cls = type(db.discussions)
    original = cls.update_one
    attempts = []

    async def always_stale(self, filter, update, *args, **kwargs):
        if self.name == "discussions" and "version" in filter:
            attempts.append(filter["version"])
            await original(self, {"discussion_id": "DISC_1"}, {"$inc": {"version": 1}})
        return await original(self, filter, update, *args, **kwargs)

    monkeypatch.setattr(cls, "update_one", always_stale)

    with pytest.raises(BusyError):
        await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)

    assert attempts == [0, 1, 2]
    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["upvoters"] == [] and doc["votes"] == 0
    assert await db.discussion_votes.count_documents({}) == 0


async def test_slow_ledger_insert_does_not_revive_cleared_vote(db, hold_first_call):
    await insert_discussion(db)
    reached, release = hold_first_call(db, "discussion_votes", "update_one")

    first = asyncio.create_task(cast_vote(db, "discussion", "DISC_1", "u", UPVOTE))
    await reached.wait()
    second = await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)
    release.set()
    await first

    assert second.user_vote is None
    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["upvoters"] == [] and doc["votes"] == 0
    assert await db.discussion_votes.count_documents({"user_id": "u"}) == 0


async def test_slow_ledger_delete_does_not_remove_newer_vote(db, hold_first_call):
    await insert_discussion(db)
    await cast_vote(db, "discussion", "DISC_1", "u", UPVOTE)
    reached, release = hold_first_call(db, "discussion_votes", "delete_one")

    first = asyncio.create_task(cast_vote(db, "discussion", "DISC_1", "u", UPVOTE))
    await reached.wait()
    await cast_vote(db, "discussion", "DISC_1", "u", DOWNVOTE)
    release.set()
    await first

    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["downvoters"] == ["u"]
    row = await db.discussion_votes.find_one({"user_id": "u", "discussion_id": "DISC_1"})
    assert (row["vote_type"], row["target_version"]) == (DOWNVOTE, 3)


async def test_concurrent_first_votes_keep_newest_ledger_row(db, hold_first_call):
    await insert_discussion(db)
    reached, release = hold_first_call(db, "discussion_votes", "update_one")

    first = asyncio.create_task(cast_vote(db, "discussion", "DISC_1", "u", UPVOTE))
    await reached.wait()
    await cast_vote(db, "discussion", "DISC_1", "u", DOWNVOTE)
    release.set()
    await first

    doc = await db.discussions.find_one({"discussion_id": "DISC_1"})
    assert doc["downvoters"] == ["u"] and doc["upvoters"] == []
    rows = await db.discussion_votes.find({"user_id": "u"}).to_list(length=None)
    assert [(r["vote_type"], r["target_version"]) for r in rows] == [(DOWNVOTE, 2)]
