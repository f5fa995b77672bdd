"""
Language-model client for the meal planner.

OpenAI is used when OPENAI_API_KEY is set, Gemini when only GEMINI_API_KEY
is. Every call asks for a JSON object and returns it parsed.
"""

import os
import json
import logging
from typing import Any, Dict

from dotenv import load_dotenv

# --- OPENAI IMPORTS ---
import openai
from openai import OpenAI

# --- GEMINI IMPORTS ---
import google.genai as genai
from google.genai import errors as genai_errors
from google.genai import types

load_dotenv()

logger = logging.getLogger(__name__)

# --- API KEY RETRIEVAL ---
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")

# --- CLIENT INITIALIZATION ---
openai_client = None
gemini_client = None
ACTIVE_AI_SERVICE = None

# Set after the provider rejects our credentials; later calls skip the network.
AI_UNAUTHORIZED = False


class AIServiceError(Exception):
    """The model could not produce a usable JSON answer."""


# 1. Try to initialize OpenAI first
if OPENAI_API_KEY:
    try:
        openai_client = OpenAI(api_key=OPENAI_API_KEY)
        ACTIVE_AI_SERVICE = "openai"
        logger.info("Initialized OpenAI client")
    except Exception as e:
        openai_client = None
        logger.warning(f"OpenAI client initialization failed: {e}. Trying fallback.")

# 2. If OpenAI failed, try Gemini
if ACTIVE_AI_SERVICE is None and GEMINI_API_KEY:
    try:
        gemini_client = genai.Client(api_key=GEMINI_API_KEY)
        ACTIVE_AI_SERVICE = "gemini"
        logger.info("Initialized Gemini client")
    except Exception as e:
        gemini_client = None
        logger.warning(f"Gemini client initialization failed: {e}.")


def ai_available() -> bool:
    return ACTIVE_AI_SERVICE is not None and not AI_UNAUTHORIZED


def _mark_unauthorized(provider: str) -> None:
    global AI_UNAUTHORIZED
    AI_UNAUTHORIZED = True
    logger.warning(f"{provider} rejected the API key; meal plans will use the built-in generator")


def _openai_text(system_prompt: str, user_prompt: str, timeout: float, max_tokens: int) -> str:
    try:
        response = openai_client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.7,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
            timeout=timeout,
        )
    except openai.AuthenticationError as e:
        _mark_unauthorized("OpenAI")
        raise AIServiceError("OpenAI unauthorized") from e
    except openai.OpenAIError as e:
        raise AIServiceError(f"OpenAI request failed: {e}") from e

    return response.choices[0].message.content or ""


def _gemini_text(system_prompt: str, user_prompt: str, timeout: float, max_tokens: int) -> str:
    try:
        response = gemini_client.models.generate_content(
            model=GEMINI_MODEL,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                response_mime_type="application/json",
                temperature=0.7,
                max_output_tokens=max_tokens,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            ),
        )
    except genai_errors.APIError as e:
        if e.code in (401, 403):
            _mark_unauthorized("Gemini")
        raise AIServiceError(f"Gemini request failed: {e}") from e
    except Exception as e:
        raise AIServiceError(f"Gemini request failed: {e}") from e

    return response.text or ""


def request_json(system_prompt: str, user_prompt: str, timeout: float, max_tokens: int = 4000) -> Dict[str, Any]:
    """
    Ask the active model for a JSON object.

    Args:
        system_prompt (str): Instructions for the model.
        user_prompt (str): The request itself.
        timeout (float): Seconds before the call is abandoned.
        max_tokens (int): Completion length cap.

    Raises:
        AIServiceError: no provider, auth failure, timeout, transport error or
            an answer that is not a JSON object.
    """
    if not ai_available():
        raise AIServiceError("AI service not available")

    if ACTIVE_AI_SERVICE == "openai":
        text = _openai_text(system_prompt, user_prompt, timeout, max_tokens)
    else:
        text = _gemini_text(system_prompt, user_prompt, timeout, max_tokens)

    try:
        parsed = json.loads(text)
    except ValueError as e:
        raise AIServiceError("AI returned non-JSON output") from e

    if not isinstance(parsed, dict):
        raise AIServiceError("AI returned JSON that is not an object")
    return parsed
