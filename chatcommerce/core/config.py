"""Application configuration."""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    chat_model: str = "gpt-4o"
    intent_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536

    # Database
    database_url: str
    # Falls back to database_url when the vector functions live in the same database
    vector_store_url: Optional[str] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Intent extraction
    intent_temperature: float = 0.3
    intent_max_tokens: int = 500

    # Vector search
    vector_db_min_similarity: float = 0.3
    vector_search_max_attempts: int = 2
    search_min_similarity: float = 0.5
    shop_search_min_similarity: float = 0.6
    cross_shop_min_similarity: float = 0.7
    text_match_similarity: float = 0.85
    category_match_similarity: float = 0.7

    # Search breadth
    max_shops: int = 10
    items_per_shop: int = 10
    cross_shop_default_limit: int = 50
    shop_search_default_limit: int = 5

    # Relevance ranking
    ranking_item_count_weight: float = 0.3
    ranking_similarity_weight: float = 0.4
    ranking_delivery_weight: float = 0.3
    ranking_empty_shop_weight: float = 0.1
    ranking_item_count_cap: int = 10
    ranking_fee_normalizer: float = 200.0
    ranking_unknown_fee_score: float = 0.5

    # Preferences
    preferences_enabled: bool = True
    preference_limit: int = 10
    preference_min_similarity: float = 0.7
    preference_min_confidence: float = 0.5
    preference_boost_factor: float = 0.1

    # Ordering
    min_landmark_length: int = 3

    # Conversation
    chat_temperature: float = 0.7
    chat_max_tokens: int = 2000
    max_tool_iterations: int = 5
    max_history_messages: int = 40
    max_conversation_sessions: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
