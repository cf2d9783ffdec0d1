"""LLM-based search intent extraction."""
import json
import logging
import re
from typing import List, Optional
from openai import AsyncOpenAI
from pydantic import ValidationError

from chatcommerce.services.search.models import SearchIntent
from chatcommerce.services.search.prompt import get_intent_system_prompt

logger = logging.getLogger(__name__)

LLM_UNAVAILABLE_REASONING = "Fallback: LLM unavailable, using direct query match"
PARSE_ERROR_REASONING = "Fallback: Parse error, using direct query match"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_BARE_JSON = re.compile(r"(\{[\s\S]*\})")


def extract_json_object(text: str) -> dict:
    """
    Pull the JSON object out of an LLM response.

    Accepts a fenced ```json block or the first {...} span. Raises ValueError
    when nothing parses to an object.
    """
    match = _FENCED_JSON.search(text) or _BARE_JSON.search(text)
    candidate = match.group(1) if match else text
    data = json.loads(candidate)
    if not isinstance(data, dict):
        raise ValueError("Intent response is not a JSON object")
    return data


class IntentExtractor:
    """Turns a free-text query into a SearchIntent. Never raises."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def extract(
        self, query: str, available_categories: Optional[List[str]] = None
    ) -> SearchIntent:
        """Extract the intent of a query, falling back to a single-item intent."""
        messages = [
            {"role": "system", "content": get_intent_system_prompt(available_categories)},
            {"role": "user", "content": query},
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            content = response.choices[0].message.content if response.choices else None
        except Exception as e:
            logger.warning(f"[INTENT] LLM call failed for '{query}': {type(e).__name__}: {e}")
            return SearchIntent.fallback(query, LLM_UNAVAILABLE_REASONING)

        if not content:
            logger.warning(f"[INTENT] LLM returned no content for '{query}'")
            return SearchIntent.fallback(query, LLM_UNAVAILABLE_REASONING)

        try:
            data = extract_json_object(content)
            if not data.get("primaryQuery"):
                data["primaryQuery"] = query
            intent = SearchIntent.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"[INTENT] Could not parse intent for '{query}': {e}")
            logger.debug(f"[INTENT] Raw response: {content}")
            return SearchIntent.fallback(query, PARSE_ERROR_REASONING)

        logger.info(
            f"[INTENT] '{query}' -> {len(intent.extracted_items)} item(s): "
            f"{[(item.name, item.quantity) for item in intent.extracted_items]}, "
            f"expanded={intent.expanded_queries}"
        )
        return intent
