"""
Gemini client for the chat assistant fallback.
Only used when no rule matches and CHAT_LLM_ENABLED is set.
"""

import logging
import threading
from typing import Optional

import google.generativeai as genai

from learnify.config import GEMINI_API_KEY, GEMINI_MODEL
from learnify.errors import AssistantUnavailable
from learnify.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_model: Optional[genai.GenerativeModel] = None
_lock = threading.Lock()


def _get_model() -> genai.GenerativeModel:
    global _model
    with _lock:
        if _model is None:
            if not GEMINI_API_KEY:
                raise AssistantUnavailable("GEMINI_API_KEY is not set")
            genai.configure(api_key=GEMINI_API_KEY)
            _model = genai.GenerativeModel(GEMINI_MODEL, system_instruction=SYSTEM_PROMPT)
        return _model


def run_gemini(prompt: str) -> str:
    """
    Blocking call, run it in a worker thread from async code.

    Raises:
        AssistantUnavailable: missing key, API error or empty answer
    """
    model = _get_model()
    try:
        response = model.generate_content(prompt)
        text = response.text.strip()
    except Exception as e:
        logger.warning("Gemini request failed: %s", e)
        raise AssistantUnavailable(str(e)) from e

    if not text:
        raise AssistantUnavailable("Empty response from Gemini")
    return text
