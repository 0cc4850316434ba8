"""
Enrollment Progress Aggregator

Two independent tracks live on an enrollment:
- sub-module completion, which drives `progress` and `status`
- quiz attempts, which append `quiz_results` and mark `completed_modules` on a pass
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.config import CAS_MAX_RETRIES
from learnify.courses.database import get_course_sub_module_ids
from learnify.courses.models import EnrollmentStatus
from learnify.database import serialize_mongo
from learnify.errors import NotFoundError, BusyError

logger = logging.getLogger(__name__)

PASS_FEEDBACK = "Congratulations! You passed this quiz."
FAIL_FEEDBACK = "Review the material and try the quiz again."

# ==================== PURE CALCULATIONS ====================

def percent_half_up(part: int, whole: int) -> int:
    """part / whole as an integer percentage, halves rounded up; 0 when whole is 0"""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def status_for(progress: int) -> EnrollmentStatus:
    if progress >= 100:
        return EnrollmentStatus.COMPLETED
    if progress > 0:
        return EnrollmentStatus.IN_PROGRESS
    return EnrollmentStatus.NOT_STARTED


def compute_progress(completed_ids: Iterable[str], course_sub_module_ids: Iterable[str]) -> Tuple[int, EnrollmentStatus]:
    """
    Progress from completed sub-modules.
    Ids that no longer belong to the course are ignored.
    """
    course_ids = set(course_sub_module_ids)
    completed = set(completed_ids) & course_ids
    progress = percent_half_up(len(completed), len(course_ids))
    return progress, status_for(progress)


def grade_quiz(quiz: dict, answers: List[Optional[str]]) -> dict:
    """Grade answers (option text per question) against the quiz's correct options"""
    score = 0
    max_score = 0
    results = []

    for index, question in enumerate(quiz.get("questions", [])):
        points = question.get("points", 10)
        max_score += points

        answer = answers[index] if index < len(answers) else None
        correct = next((o for o in question.get("options", []) if o.get("is_correct")), None)
        correct_text = correct["text"] if correct else None
        is_correct = correct is not None and answer == correct_text

        if is_correct:
            score += points

        results.append({
            "question": question.get("question"),
            "user_answer": answer,
            "correct_answer": correct_text,
            "is_correct": is_correct,
            "explanation": question.get("explanation", ""),
            "points": points if is_correct else 0,
            "max_points": points
        })

    percentage = percent_half_up(score, max_score)
    passing_score = quiz.get("passing_score", 70)
    is_passed = percentage >= passing_score

    return {
        "score": score,
        "max_score": max_score,
        "percentage": percentage,
        "is_passed": is_passed,
        "passing_score": passing_score,
        "results": results,
        "feedback": PASS_FEEDBACK if is_passed else FAIL_FEEDBACK
    }

# ==================== ENROLLMENT UPDATES ====================

async def _write_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    merge_sub_modules: Iterable[str] = (),
    merge_modules: Iterable[str] = ()
) -> dict:
    """
    Merge ids into the enrollment sets and recompute progress.
    Compare-and-swap on `version`; a lost race re-reads and retries.
    """
    merge_sub_modules = list(merge_sub_modules)
    merge_modules = list(merge_modules)
    course_sub_ids = await get_course_sub_module_ids(db, course_id)

    for _ in range(CAS_MAX_RETRIES):
        enrollment = await db.enrollments.find_one({"user_id": user_id, "course_id": course_id})
        if not enrollment:
            raise NotFoundError("Enrollment not found")

        completed_subs = list(enrollment.get("completed_sub_modules", []))
        for sub_id in merge_sub_modules:
            if sub_id not in completed_subs:
                completed_subs.append(sub_id)

        completed_modules = list(enrollment.get("completed_modules", []))
        for module_id in merge_modules:
            if module_id not in completed_modules:
                completed_modules.append(module_id)

        progress, status = compute_progress(completed_subs, course_sub_ids)
        now = datetime.utcnow()

        result = await db.enrollments.update_one(
            {"_id": enrollment["_id"], "version": enrollment.get("version")},
            {
                "$set": {
                    "completed_sub_modules": completed_subs,
                    "completed_modules": completed_modules,
                    "progress": progress,
                    "status": status.value,
                    "last_accessed": now
                },
                "$inc": {"version": 1}
            }
        )
        if result.modified_count == 1:
            enrollment.update({
                "completed_sub_modules": completed_subs,
                "completed_modules": completed_modules,
                "progress": progress,
                "status": status.value,
                "last_accessed": now,
                "version": (enrollment.get("version") or 0) + 1
            })
            return enrollment

        logger.debug("Enrollment %s changed concurrently, retrying", enrollment.get("enrollment_id"))

    raise BusyError("Enrollment is being updated, please retry")


async def complete_sub_module(db: AsyncIOMotorDatabase, user_id: str, module_id: str, sub_module_id: str) -> dict:
    module = await db.modules.find_one({"module_id": module_id})
    if not module:
        raise NotFoundError("Module not found")

    if not any(s.get("sub_module_id") == sub_module_id for s in module.get("sub_modules", [])):
        raise NotFoundError("Sub-module not found")

    enrollment = await _write_progress(db, user_id, module["course_id"], merge_sub_modules=[sub_module_id])
    logger.info("User %s completed %s, progress %d", user_id, sub_module_id, enrollment["progress"])

    return {
        "progress": enrollment["progress"],
        "status": enrollment["status"],
        "completed_sub_modules": enrollment["completed_sub_modules"]
    }


async def sync_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    completed_modules: Iterable[str] = (),
    completed_sub_modules: Iterable[str] = ()
) -> dict:
    """Merge client-reported completions; the percentage is always recomputed server-side"""
    enrollment = await _write_progress(
        db, user_id, course_id,
        merge_sub_modules=completed_sub_modules,
        merge_modules=completed_modules
    )
    return serialize_mongo(enrollment)


async def get_enrollment_with_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    """Enrollment as stored, with progress/status recomputed against the current sub-modules"""
    enrollment = await db.enrollments.find_one({"user_id": user_id, "course_id": course_id})
    if not enrollment:
        raise NotFoundError("Enrollment not found")

    course_sub_ids = await get_course_sub_module_ids(db, course_id)
    progress, status = compute_progress(enrollment.get("completed_sub_modules", []), course_sub_ids)
    enrollment["progress"] = progress
    enrollment["status"] = status.value
    return serialize_mongo(enrollment)


async def submit_quiz(db: AsyncIOMotorDatabase, user_id: str, module_id: str, answers: List[Optional[str]]) -> dict:
    module = await db.modules.find_one({"module_id": module_id})
    if not module or not module.get("quiz"):
        raise NotFoundError("Quiz not found")

    graded = grade_quiz(module["quiz"], answers)

    update = {
        "$push": {"quiz_results": {
            "module_id": module_id,
            "score": graded["percentage"],
            "is_passed": graded["is_passed"],
            "completed_at": datetime.utcnow()
        }},
        "$set": {"last_accessed": datetime.utcnow()},
        # Bumped so a concurrent progress write cannot drop completed_modules
        "$inc": {"version": 1}
    }
    if graded["is_passed"]:
        update["$addToSet"] = {"completed_modules": module_id}

    # Single atomic update; without an enrollment the attempt is graded but not recorded
    result = await db.enrollments.update_one(
        {"user_id": user_id, "course_id": module["course_id"]},
        update
    )
    if result.matched_count == 0:
        logger.info("Quiz on %s graded for unenrolled user %s, result not stored", module_id, user_id)

    return graded
