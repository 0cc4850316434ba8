"""
Vote Ledger for discussions and replies.

Per (user, target) state is None, upvote or downvote. Requesting the current
state again toggles it off; requesting None clears it. The target document
carries `upvoters`, `downvoters` and the tally `votes`, written together with a
compare-and-swap on `version`. `discussion_votes` mirrors the per-user state,
stamped with the target version each row reflects.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnify.config import CAS_MAX_RETRIES
from learnify.database import generate_id
from learnify.errors import NotFoundError, BusyError

logger = logging.getLogger(__name__)

UPVOTE = "upvote"
DOWNVOTE = "downvote"

# target kind -> (collection, id field)
VOTE_TARGETS = {
    "discussion": ("discussions", "discussion_id"),
    "reply": ("discussion_replies", "reply_id"),
}


@dataclass
class VoteOutcome:
    upvoters: List[str]
    downvoters: List[str]
    previous: Optional[str]
    user_vote: Optional[str]

    @property
    def votes(self) -> int:
        return len(self.upvoters) - len(self.downvoters)


def current_vote(upvoters: List[str], downvoters: List[str], user_id: str) -> Optional[str]:
    if user_id in upvoters:
        return UPVOTE
    if user_id in downvoters:
        return DOWNVOTE
    return None


def apply_vote(upvoters: List[str], downvoters: List[str], user_id: str, vote_type: Optional[str]) -> VoteOutcome:
    """Pure state transition; returns new voter lists without touching the inputs"""
    previous = current_vote(upvoters, downvoters, user_id)

    up = [u for u in upvoters if u != user_id]
    down = [u for u in downvoters if u != user_id]

    if vote_type is None or vote_type == previous:
        user_vote = None
    elif vote_type == UPVOTE:
        up.append(user_id)
        user_vote = UPVOTE
    elif vote_type == DOWNVOTE:
        down.append(user_id)
        user_vote = DOWNVOTE
    else:
        raise ValueError(f"Unknown vote type: {vote_type}")

    return VoteOutcome(upvoters=up, downvoters=down, previous=previous, user_vote=user_vote)


async def cast_vote(
    db: AsyncIOMotorDatabase,
    target: str,
    target_id: str,
    user_id: str,
    vote_type: Optional[str],
    scope: Optional[dict] = None
) -> VoteOutcome:
    """
    Apply a vote to a discussion or reply.
    `scope` narrows the lookup, e.g. {"discussion_id": ...} for a reply.
    """
    collection_name, id_field = VOTE_TARGETS[target]
    collection = db[collection_name]
    query = {id_field: target_id, **(scope or {})}

    for _ in range(CAS_MAX_RETRIES):
        doc = await collection.find_one(query)
        if not doc:
            raise NotFoundError(f"{target.capitalize()} not found")

        outcome = apply_vote(doc.get("upvoters", []), doc.get("downvoters", []), user_id, vote_type)

        result = await collection.update_one(
            {"_id": doc["_id"], "version": doc.get("version")},
            {
                "$set": {
                    "upvoters": outcome.upvoters,
                    "downvoters": outcome.downvoters,
                    "votes": outcome.votes,
                    "updated_at": datetime.utcnow()
                },
                "$inc": {"version": 1}
            }
        )
        if result.modified_count == 1:
            break
    else:
        raise BusyError("Too many concurrent votes, please retry")

    version = (doc.get("version") or 0) + 1
    await _sync_ledger(db, collection, doc["_id"], id_field, target_id, user_id, outcome.user_vote, version)

    logger.debug("%s %s vote by %s: %s -> %s (tally %d, v%d)",
                 target, target_id, user_id, outcome.previous, outcome.user_vote, outcome.votes, version)
    return outcome


async def _sync_ledger(
    db: AsyncIOMotorDatabase,
    collection,
    doc_id,
    id_field: str,
    target_id: str,
    user_id: str,
    user_vote: Optional[str],
    version: int
):
    """
    Mirror the user's state into `discussion_votes`.

    Rows carry the target version that produced them (`target_version`) and are
    only replaced or removed by a write from a newer version, so a slow write
    never undoes a later one.
    """
    older = {
        "user_id": user_id,
        id_field: target_id,
        "$or": [{"target_version": {"$lt": version}}, {"target_version": {"$exists": False}}]
    }

    if user_vote is None:
        await db.discussion_votes.delete_one(older)
        return

    now = datetime.utcnow()
    update = {"$set": {"vote_type": user_vote, "target_version": version, "updated_at": now}}
    try:
        result = await db.discussion_votes.update_one(
            older,
            {**update, "$setOnInsert": {"vote_id": generate_id("VOTE"), "created_at": now}},
            upsert=True
        )
    except DuplicateKeyError:
        # Row inserted concurrently; take it over only if it is older
        await db.discussion_votes.update_one(older, update)
        return

    if result.upserted_id is None:
        return

    # A newer write may have removed the row before this insert landed
    doc = await collection.find_one({"_id": doc_id}, {"upvoters": 1, "downvoters": 1})
    state = current_vote(doc.get("upvoters", []), doc.get("downvoters", []), user_id) if doc else None
    if state != user_vote:
        await db.discussion_votes.delete_one({"_id": result.upserted_id, "target_version": version})
        logger.debug("Dropped stale ledger row for %s on %s %s", user_id, id_field, target_id)
