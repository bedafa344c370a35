"""
Prompt Builder — Refinement Service
Prompt refinement, prompt qualification and key validation on top of the
provider clients.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from promptbuilder.core.config import settings
from promptbuilder.services.providers import LLMProvider, ProviderError

logger = logging.getLogger(__name__)

MANAGED_REFINE_SYSTEM_PROMPT = (
    "You are an expert prompt engineer assistant. The user will provide prompt components "
    "(like Instructions, Context, Role, Example Input, Example Output, Tools). Your task is to "
    "combine these components into a single, cohesive, and effective prompt suitable for a large "
    "language model. Ensure the final prompt clearly incorporates the intent and details from all "
    "provided components. Structure the output logically. Output *only* the final combined and "
    "refined prompt text, without any explanations or preambles."
)

USER_REFINE_SYSTEM_PROMPT = (
    "You are an expert prompt engineer assistant. Your SOLE TASK is to refine the user-provided "
    "text into a single, cohesive, and effective prompt suitable for a large language model. "
    "Combine any provided components logically. Focus on clarity, conciseness, and structure. "
    "CRITICAL: Output ONLY the refined prompt text itself. Do NOT execute the prompt, do NOT "
    "provide explanations, do NOT add introductory or concluding remarks, do NOT add markdown "
    "formatting. ONLY output the refined prompt."
)

QUALIFIER_SYSTEM_PROMPT = """You are a prompt analysis assistant. Your task is to classify user input intended for a prompt refinement process.
Categories:
1.  'valid_for_refinement': The text contains enough substance, clear intent, or structure that an expert prompt engineer could meaningfully refine it into a better prompt. It might be a complete prompt, a good starting instruction, or a clear request for content.
2.  'meta_request_for_prompt': The text is asking for assistance in *creating* a new prompt from scratch (e.g., "Help me write a prompt for X", "What's a good prompt to summarize text?", "Create a prompt for a customer service bot").
3.  'too_vague_or_incomplete': The text is too short (e.g., less than 5 words), ambiguous, or lacks enough context/detail to be meaningfully refined into a specific, actionable prompt (e.g., "summary", "tell me something", "image").
4.  'gibberish': The text is nonsensical, random characters, or clearly not intended as a prompt or question.

Output ONLY a JSON object: {"type": "CATEGORY_NAME"}
Example 1 User: "Write a poem about cats". Output: {"type": "valid_for_refinement"}
Example 2 User: "How to make prompts better?". Output: {"type": "meta_request_for_prompt"}
Example 3 User: "asdf ghjkl". Output: {"type": "gibberish"}
Example 4 User: "Summarize". Output: {"type": "too_vague_or_incomplete"}
"""

QUALIFICATION_TYPES = (
    "valid_for_refinement",
    "meta_request_for_prompt",
    "too_vague_or_incomplete",
    "gibberish",
)


@dataclass(frozen=True)
class QualificationResult:
    type: str
    detail: Optional[str] = None


async def refine_prompt(
    provider: LLMProvider,
    prompt: str,
    model: Optional[str] = None,
    system_prompt: str = MANAGED_REFINE_SYSTEM_PROMPT,
) -> str:
    model = model or provider.default_model
    logger.info(f"Refining with {provider.name.label} ({model})...")
    refined = await provider.complete(
        system_prompt,
        prompt,
        model=model,
        temperature=settings.REFINE_TEMPERATURE,
        max_tokens=settings.REFINE_MAX_TOKENS,
    )
    if not refined:
        logger.error(f"No refined prompt content received from {provider.name.label} ({model}).")
        raise ProviderError(provider.name, 502, f"No content received from {provider.name.value}.")
    logger.info(f"Refinement successful from {provider.name.label} ({model}).")
    return refined


def parse_qualification(raw: Optional[str]) -> QualificationResult:
    if not raw:
        raise ValueError("No content received from qualification model.")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.error(f"Failed to parse qualification response: {raw}")
        raise ValueError("Could not understand qualification model response.")
    kind = parsed.get("type") if isinstance(parsed, dict) else None
    if kind not in QUALIFICATION_TYPES:
        logger.error(f"Invalid type in qualification response: {kind}")
        raise ValueError("Invalid JSON structure or type received from qualification model.")
    return QualificationResult(type=kind)


async def qualify_prompt(provider: LLMProvider, prompt_text: str) -> QualificationResult:
    logger.info(f"Sending text for qualification: {prompt_text[:100]}...")
    raw = await provider.complete(
        QUALIFIER_SYSTEM_PROMPT,
        prompt_text,
        model=settings.QUALIFIER_MODEL,
        temperature=0.0,
        max_tokens=60,
        json_mode=True,
    )
    result = parse_qualification(raw)
    logger.info(f"Qualification result: {result.type}")
    return result


async def validate_key(provider: LLMProvider) -> List[str]:
    """A key is valid when the provider lets it list models."""
    models = await provider.list_models()
    logger.info(f"{provider.name.label} key validated, {len(models)} models available")
    return models


def describe_provider_error(exc: Exception, provider: str, model: Optional[str] = None) -> str:
    """Best-effort, user-facing explanation of an upstream failure."""
    status_code = getattr(exc, "status_code", None)
    message = getattr(exc, "message", None) or str(exc)
    lowered = message.lower()

    if status_code in (401, 403) or "api key" in lowered or "authentication" in lowered or "invalid x-api-key" in lowered:
        return "Authentication failed. Please check your API Key."
    if "quota" in lowered or "billing" in lowered or "credit balance" in lowered:
        return f"The {provider} account has exhausted its quota. Please check plan and billing details."
    if status_code == 429 or "rate limit" in lowered:
        return "API rate limit exceeded. Please try again later."
    if status_code == 404 or "not found" in lowered:
        return f"Model '{model}' not found or accessible with this key."
    return message or f"Failed to refine prompt using {provider}."
