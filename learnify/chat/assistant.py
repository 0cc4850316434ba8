import asyncio
import logging
from typing import Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.ai import gemini_core
from learnify.ai.prompts import build_prompt
from learnify.chat.rules import RULES, DEFAULT_REPLY, ChatRule, match_rule
from learnify.config import CHAT_LLM_ENABLED
from learnify.courses.dependencies import UserContext
from learnify.errors import AssistantUnavailable

logger = logging.getLogger(__name__)


class ChatAssistant:
    """
    Picks a reply for a chat message:
    first matching rule, else the language model (when enabled), else DEFAULT_REPLY.
    """
    def __init__(
        self,
        rules: Optional[List[ChatRule]] = None,
        llm: Optional[Callable[[str], str]] = None,
        llm_enabled: bool = CHAT_LLM_ENABLED
    ):
        self.rules = RULES if rules is None else rules
        self.llm = llm or gemini_core.run_gemini
        self.llm_enabled = llm_enabled

    async def reply(
        self,
        message: str,
        user: UserContext,
        context: Optional[dict] = None,
        db: Optional[AsyncIOMotorDatabase] = None
    ) -> str:
        rule = match_rule(message, self.rules)
        if rule:
            logger.debug("Chat rule %s matched for %s", rule.name, user.user_id)
            return rule.render(user.name)

        if not self.llm_enabled:
            return DEFAULT_REPLY

        course, module = await self._load_context(db, context or {})
        prompt = build_prompt(message, user.name or "Student", user.role, course, module)
        try:
            return await asyncio.to_thread(self.llm, prompt)
        except AssistantUnavailable as e:
            logger.warning("Assistant LLM unavailable, using default reply: %s", e)
            return DEFAULT_REPLY

    async def _load_context(self, db: Optional[AsyncIOMotorDatabase], context: dict):
        if db is None:
            return None, None
        course = None
        module = None
        if context.get("course_id"):
            course = await db.courses.find_one({"course_id": context["course_id"]})
        if context.get("module_id"):
            module = await db.modules.find_one({"module_id": context["module_id"]})
        return course, module


assistant = ChatAssistant()
