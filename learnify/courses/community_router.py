from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from typing import List, Optional
from datetime import datetime
import logging

from learnify.database import get_db, generate_id, serialize_mongo
from learnify.courses.dependencies import UserContext, get_current_user, get_optional_user
from learnify.courses.models import DiscussionCreate, DiscussionSort, ReplyCreate, VoteRequest
from learnify.courses.votes import cast_vote, current_vote
from learnify.errors import NotFoundError, ForbiddenError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discussions", tags=["Community & Discussions"])

SORT_OPTIONS = {
    DiscussionSort.LATEST: [("created_at", -1)],
    DiscussionSort.TRENDING: [("votes", -1), ("views", -1), ("created_at", -1)],
    DiscussionSort.POPULAR: [("votes", -1), ("created_at", -1)],
    DiscussionSort.UNANSWERED: [("answer_count", 1), ("created_at", -1)],
}

# ==================== HELPERS ====================

async def get_authors(db: AsyncIOMotorDatabase, user_ids: List[str]) -> dict:
    """Basic display info per user id; unknown users show as Anonymous"""
    users = await db.users.find({"user_id": {"$in": list(set(user_ids))}}).to_list(length=None)
    by_id = {
        u["user_id"]: {"user_id": u["user_id"], "name": u.get("name", "Anonymous"), "avatar": u.get("avatar")}
        for u in users
    }
    return {
        uid: by_id.get(uid, {"user_id": uid, "name": "Anonymous", "avatar": None})
        for uid in user_ids
    }


def present(doc: dict, authors: dict, user: Optional[UserContext]) -> dict:
    doc = serialize_mongo(doc)
    doc["author"] = authors.get(doc["author_id"])
    doc["user_vote"] = (
        current_vote(doc.get("upvoters", []), doc.get("downvoters", []), user.user_id)
        if user else None
    )
    return doc


def normalize_tags(tags: List[str]) -> List[str]:
    seen = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


async def require_discussion(db: AsyncIOMotorDatabase, discussion_id: str) -> dict:
    discussion = await db.discussions.find_one({"discussion_id": discussion_id})
    if not discussion:
        raise NotFoundError("Discussion not found")
    return discussion

# ==================== DISCUSSIONS ====================

@router.get("")
async def list_discussions(
    sort: DiscussionSort = DiscussionSort.LATEST,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    discussions = await db.discussions.find({}).sort(SORT_OPTIONS[sort]).limit(limit).to_list(length=None)
    authors = await get_authors(db, [d["author_id"] for d in discussions])
    return [present(d, authors, user) for d in discussions]


@router.post("", status_code=201)
async def create_discussion(
    data: DiscussionCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    now = datetime.utcnow()
    discussion = {
        "discussion_id": generate_id("DISC"),
        "title": data.title.strip(),
        "content": data.content,
        "author_id": user.user_id,
        "category": data.category.value,
        "tags": normalize_tags(data.tags),
        "votes": 0,
        "upvoters": [],
        "downvoters": [],
        "views": 0,
        "answer_count": 0,
        "is_solved": False,
        "is_pinned": False,
        "is_official": user.is_admin and data.category.value == "official",
        "version": 0,
        "created_at": now,
        "updated_at": now
    }
    await db.discussions.insert_one(discussion)
    logger.info("Discussion %s created by %s", discussion["discussion_id"], user.user_id)

    authors = await get_authors(db, [user.user_id])
    return present(discussion, authors, user)


@router.get("/{discussion_id}")
async def get_discussion(
    discussion_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    """Single discussion; every read counts as a view"""
    discussion = await db.discussions.find_one_and_update(
        {"discussion_id": discussion_id},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER
    )
    if not discussion:
        raise NotFoundError("Discussion not found")

    authors = await get_authors(db, [discussion["author_id"]])
    return present(discussion, authors, user)


@router.put("/{discussion_id}/vote")
async def vote_discussion(
    discussion_id: str,
    vote: VoteRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Upvote / downvote a discussion.
    Repeating the current vote removes it; vote_type null clears it.
    """
    vote_type = vote.vote_type.value if vote.vote_type else None
    outcome = await cast_vote(db, "discussion", discussion_id, user.user_id, vote_type)
    return {
        "votes": outcome.votes,
        "user_vote": outcome.user_vote,
        "upvoters": len(outcome.upvoters),
        "downvoters": len(outcome.downvoters)
    }

# ==================== REPLIES ====================

@router.get("/{discussion_id}/replies")
async def list_replies(
    discussion_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[UserContext] = Depends(get_optional_user)
):
    """Top-level replies (accepted first, then by votes, then oldest) with nested replies"""
    replies = await db.discussion_replies.find({"discussion_id": discussion_id}).to_list(length=None)
    authors = await get_authors(db, [r["author_id"] for r in replies])

    top_level = [r for r in replies if not r.get("parent_reply_id")]
    top_level.sort(key=lambda r: r["created_at"])
    top_level.sort(key=lambda r: (not r.get("is_accepted_answer", False), -r.get("votes", 0)))

    children = {}
    for reply in sorted(replies, key=lambda r: r["created_at"]):
        if reply.get("parent_reply_id"):
            children.setdefault(reply["parent_reply_id"], []).append(reply)

    result = []
    for reply in top_level:
        item = present(reply, authors, user)
        item["replies"] = [present(child, authors, user) for child in children.get(reply["reply_id"], [])]
        result.append(item)
    return result


@router.post("/{discussion_id}/replies", status_code=201)
async def add_reply(
    discussion_id: str,
    data: ReplyCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    await require_discussion(db, discussion_id)

    if data.parent_reply_id:
        parent = await db.discussion_replies.find_one({
            "reply_id": data.parent_reply_id,
            "discussion_id": discussion_id
        })
        if not parent:
            raise NotFoundError("Parent reply not found")

    now = datetime.utcnow()
    reply = {
        "reply_id": generate_id("RPL"),
        "discussion_id": discussion_id,
        "content": data.content,
        "author_id": user.user_id,
        "parent_reply_id": data.parent_reply_id,
        "is_accepted_answer": False,
        "votes": 0,
        "upvoters": [],
        "downvoters": [],
        "version": 0,
        "created_at": now,
        "updated_at": now
    }
    await db.discussion_replies.insert_one(reply)

    answer_count = await db.discussion_replies.count_documents({"discussion_id": discussion_id})
    await db.discussions.update_one(
        {"discussion_id": discussion_id},
        {"$set": {"answer_count": answer_count, "updated_at": now}}
    )

    authors = await get_authors(db, [user.user_id])
    return present(reply, authors, user)


@router.put("/{discussion_id}/replies/{reply_id}/vote")
async def vote_reply(
    discussion_id: str,
    reply_id: str,
    vote: VoteRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    vote_type = vote.vote_type.value if vote.vote_type else None
    outcome = await cast_vote(
        db, "reply", reply_id, user.user_id, vote_type,
        scope={"discussion_id": discussion_id}
    )
    return {"votes": outcome.votes, "user_vote": outcome.user_vote}


@router.put("/{discussion_id}/replies/{reply_id}/accept")
async def accept_answer(
    discussion_id: str,
    reply_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Mark a reply as the accepted answer (discussion author only).
    Set first, clear the rest second: concurrent accepts leave at most one accepted.
    """
    discussion = await require_discussion(db, discussion_id)

    if discussion["author_id"] != user.user_id:
        raise ForbiddenError("Only the author can accept an answer")

    result = await db.discussion_replies.update_one(
        {"reply_id": reply_id, "discussion_id": discussion_id},
        {"$set": {"is_accepted_answer": True}}
    )
    if result.matched_count == 0:
        raise NotFoundError("Reply not found")

    await db.discussion_replies.update_many(
        {"discussion_id": discussion_id, "reply_id": {"$ne": reply_id}},
        {"$set": {"is_accepted_answer": False}}
    )
    # A racing accept may have cleared this one too; solved follows what is left
    is_solved = await db.discussion_replies.count_documents(
        {"discussion_id": discussion_id, "is_accepted_answer": True}
    ) > 0
    await db.discussions.update_one(
        {"discussion_id": discussion_id},
        {"$set": {"is_solved": is_solved, "updated_at": datetime.utcnow()}}
    )

    return {"msg": "Answer accepted", "is_accepted": True}
