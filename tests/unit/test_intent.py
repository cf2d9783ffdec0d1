"""Unit tests for search intent extraction."""
import json
import pytest
from unittest.mock import AsyncMock

from chatcommerce.services.search.intent import (
    LLM_UNAVAILABLE_REASONING,
    PARSE_ERROR_REASONING,
    IntentExtractor,
    extract_json_object,
)
from chatcommerce.services.search.models import ExtractedItem, SearchIntent, normalize_quantity
from chatcommerce.services.search.prompt import get_intent_system_prompt, load_vocabulary


MULTI_ITEM_RESPONSE = {
    "primaryQuery": "pamper, 2 always, 3 shampoo",
    "expandedQueries": ["pampers diapers", "always pads", "shampoo"],
    "categories": ["Baby Care", "Personal Care"],
    "brands": ["Pampers", "Always"],
    "itemTypes": ["diapers", "sanitary pads", "shampoo"],
    "extractedItems": [
        {"name": "diapers", "brand": "Pampers", "searchTerms": ["pampers", "diapers"], "quantity": 1},
        {"name": "sanitary pads", "brand": "Always", "searchTerms": ["always"], "quantity": 2},
        {"name": "shampoo", "searchTerms": ["shampoo"], "quantity": 3},
    ],
    "reasoning": "Three separate items",
}


class TestQuantityNormalization:
    """Test quantity normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [(3, 3), (1, 1), (0, 1), (-2, 1), (2.0, 2), (2.5, 1), ("4", 4), ("0", 1), ("two", 1), (None, 1), (True, 1)],
    )
    def test_normalize_quantity(self, value, expected):
        """Integers >= 1 are kept; anything else becomes 1."""
        assert normalize_quantity(value) == expected

    def test_extracted_item_normalizes_quantity(self):
        """ExtractedItem applies the normalization on validation."""
        item = ExtractedItem.model_validate({"name": "bread", "quantity": 0})
        assert item.quantity == 1
        assert item.search_terms == ["bread"]

    def test_intent_defaults_expanded_queries(self):
        """An intent without expanded queries searches its primary query."""
        intent = SearchIntent.model_validate({"primaryQuery": "milk"})
        assert intent.expanded_queries == ["milk"]


class TestJsonExtraction:
    """Test lenient JSON extraction from model output."""

    def test_fenced_block(self):
        """A ```json fenced block is unwrapped."""
        text = 'Here you go:\n```json\n{"primaryQuery": "lays"}\n```'
        assert extract_json_object(text) == {"primaryQuery": "lays"}

    def test_bare_object_with_prose(self):
        """The first {...} span is used when there is no fence."""
        text = 'Sure! {"primaryQuery": "coke"} Hope that helps.'
        assert extract_json_object(text) == {"primaryQuery": "coke"}

    def test_invalid_raises_value_error(self):
        """Unparseable text raises ValueError."""
        with pytest.raises(ValueError):
            extract_json_object("no json here")


class TestIntentExtractor:
    """Test IntentExtractor against a mocked LLM."""

    @pytest.mark.asyncio
    async def test_multi_item_split(self, mock_openai, completion):
        """'pamper, 2 always, 3 shampoo' yields three items with their quantities."""
        mock_openai.chat.completions.create = AsyncMock(
            return_value=completion(content=f"```json\n{json.dumps(MULTI_ITEM_RESPONSE)}\n```")
        )
        extractor = IntentExtractor(mock_openai, "gpt-4o-mini")

        intent = await extractor.extract("pamper, 2 always, 3 shampoo")

        assert len(intent.extracted_items) == 3
        quantities = {item.brand or item.name: item.quantity for item in intent.extracted_items}
        assert quantities["Always"] == 2
        assert quantities["shampoo"] == 3
        assert intent.expanded_queries == ["pampers diapers", "always pads", "shampoo"]

    @pytest.mark.asyncio
    async def test_null_lists_keep_multi_item_split(self, mock_openai, completion):
        """Null list fields are read as empty instead of discarding the whole intent."""
        payload = json.loads(json.dumps(MULTI_ITEM_RESPONSE))
        payload["extractedItems"][0]["searchTerms"] = None
        payload["brands"] = None
        payload["itemTypes"] = None
        payload["categories"] = None
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content=json.dumps(payload)))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("pamper, 2 always, 3 shampoo")

        assert intent.reasoning == "Three separate items"
        assert [item.quantity for item in intent.extracted_items] == [1, 2, 3]
        assert intent.extracted_items[0].search_terms == ["diapers"]
        assert intent.brands == []
        assert intent.categories == []

    @pytest.mark.asyncio
    async def test_zero_quantity_is_normalized(self, mock_openai, completion):
        """'0 bread' comes back with quantity 1."""
        payload = {
            "primaryQuery": "0 bread",
            "extractedItems": [{"name": "bread", "searchTerms": ["bread"], "quantity": 0}],
        }
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content=json.dumps(payload)))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("0 bread")

        assert intent.extracted_items[0].quantity == 1

    @pytest.mark.asyncio
    async def test_non_numeric_quantity_is_normalized(self, mock_openai, completion):
        """A quantity the model could not express as a number becomes 1."""
        payload = {"extractedItems": [{"name": "eggs", "quantity": "a dozen"}]}
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content=json.dumps(payload)))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("a dozen eggs")

        assert intent.extracted_items[0].quantity == 1
        assert intent.primary_query == "a dozen eggs"

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(self, mock_openai):
        """A failing LLM call yields the single-item fallback intent."""
        mock_openai.chat.completions.create = AsyncMock(side_effect=RuntimeError("service down"))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("lays")

        assert intent.primary_query == "lays"
        assert intent.expanded_queries == ["lays"]
        assert len(intent.extracted_items) == 1
        assert intent.extracted_items[0].name == "lays"
        assert intent.extracted_items[0].quantity == 1
        assert intent.reasoning == LLM_UNAVAILABLE_REASONING

    @pytest.mark.asyncio
    async def test_empty_content_falls_back(self, mock_openai, completion):
        """No content counts as the LLM being unavailable."""
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content=None))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("milk")

        assert intent.reasoning == LLM_UNAVAILABLE_REASONING

    @pytest.mark.asyncio
    async def test_parse_error_falls_back(self, mock_openai, completion):
        """Garbage output yields the parse-error fallback."""
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content="I cannot help with that"))

        intent = await IntentExtractor(mock_openai, "gpt-4o-mini").extract("milk")

        assert intent.reasoning == PARSE_ERROR_REASONING
        assert intent.extracted_items[0].search_terms == ["milk"]

    @pytest.mark.asyncio
    async def test_request_parameters(self, mock_openai, completion):
        """The configured model, temperature and token limit are sent."""
        mock_openai.chat.completions.create = AsyncMock(return_value=completion(content='{"primaryQuery": "x"}'))

        await IntentExtractor(mock_openai, "gpt-4o-mini", temperature=0.3, max_tokens=500).extract("x")

        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 500
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {"role": "user", "content": "x"}


class TestIntentPrompt:
    """Test the intent prompt and vocabulary."""

    def test_vocabulary_loads(self):
        """The bundled vocabulary has brand and category maps."""
        vocabulary = load_vocabulary()
        assert vocabulary["brand_variations"]
        assert vocabulary["category_synonyms"]

    def test_prompt_lists_known_categories(self):
        """Known categories are included in the prompt."""
        prompt = get_intent_system_prompt(["Munchies", "Beverages"])
        assert "Munchies" in prompt
        assert "Beverages" in prompt
