"""Service construction and FastAPI dependencies."""
from functools import lru_cache
from typing import Optional
from fastapi import Depends
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import async_sessionmaker

from chatcommerce.core.config import Settings, settings
from chatcommerce.db.database import get_session_factory, to_async_url
from chatcommerce.services.agent.conversation import ConversationManager
from chatcommerce.services.agent.router import FunctionRouter
from chatcommerce.services.ai.embeddings import EmbeddingService
from chatcommerce.services.delivery.fees import DeliveryFeeCalculator
from chatcommerce.services.delivery.repository import DeliveryLogicRepository
from chatcommerce.services.ordering.stock import StockValidator
from chatcommerce.services.ordering.validator import OrderValidator
from chatcommerce.services.persistence.addresses import AddressPersistenceService
from chatcommerce.services.persistence.carts import CartPersistenceService
from chatcommerce.services.persistence.orders import OrderPersistenceService
from chatcommerce.services.search.categories import CategoryMatcher
from chatcommerce.services.search.gateway import TextSearchStrategy, VectorSearchGateway, VectorSearchStrategy
from chatcommerce.services.search.intelligent import IntelligentSearchService
from chatcommerce.services.search.intent import IntentExtractor
from chatcommerce.services.search.preferences import PreferenceBooster, PreferenceRetriever
from chatcommerce.services.search.ranking import RankingWeights, RelevanceRanker
from chatcommerce.services.search.vector_store import PgVectorStore, VectorStore
from chatcommerce.services.shops.repository import ShopRepository


@lru_cache()
def get_openai_client() -> AsyncOpenAI:
    """Shared OpenAI client."""
    return AsyncOpenAI(api_key=settings.openai_api_key)


@lru_cache()
def get_vector_store() -> VectorStore:
    """Vector store holding the item and preference embeddings."""
    return PgVectorStore(to_async_url(settings.vector_store_url or settings.database_url))


def build_function_router(
    session_factory: async_sessionmaker,
    client: AsyncOpenAI,
    vector_store: VectorStore,
    config: Optional[Settings] = None,
) -> FunctionRouter:
    """Wire the search and ordering services behind a FunctionRouter."""
    config = config or settings

    shop_repository = ShopRepository(session_factory)
    delivery_logic_repository = DeliveryLogicRepository(session_factory)
    embedding_service = EmbeddingService(client, config.embedding_model, config.embedding_dimension)
    fee_calculator = DeliveryFeeCalculator(delivery_logic_repository)

    gateway = VectorSearchGateway(
        [
            VectorSearchStrategy(
                embedding_service,
                vector_store,
                db_min_similarity=config.vector_db_min_similarity,
                max_attempts=config.vector_search_max_attempts,
            ),
            TextSearchStrategy(shop_repository, config.text_match_similarity),
        ],
        shop_min_similarity=config.shop_search_min_similarity,
        cross_shop_min_similarity=config.cross_shop_min_similarity,
    )

    # Preference boosting is a capability switched on or off by configuration
    preference_retriever = None
    if config.preferences_enabled:
        preference_retriever = PreferenceRetriever(
            embedding_service,
            vector_store,
            limit=config.preference_limit,
            min_similarity=config.preference_min_similarity,
            min_confidence=config.preference_min_confidence,
        )

    ranker = RelevanceRanker(
        RankingWeights(
            item_count=config.ranking_item_count_weight,
            similarity=config.ranking_similarity_weight,
            delivery=config.ranking_delivery_weight,
            empty_shop=config.ranking_empty_shop_weight,
            item_count_cap=config.ranking_item_count_cap,
            fee_normalizer=config.ranking_fee_normalizer,
            unknown_fee_score=config.ranking_unknown_fee_score,
        ),
        items_per_shop=config.items_per_shop,
    )

    search_service = IntelligentSearchService(
        intent_extractor=IntentExtractor(
            client,
            config.intent_model,
            temperature=config.intent_temperature,
            max_tokens=config.intent_max_tokens,
        ),
        shop_repository=shop_repository,
        search_gateway=gateway,
        category_matcher=CategoryMatcher(shop_repository, config.category_match_similarity),
        fee_calculator=fee_calculator,
        ranker=ranker,
        preference_booster=PreferenceBooster(config.preference_boost_factor),
        preference_retriever=preference_retriever,
        min_similarity=config.search_min_similarity,
        default_limit=config.cross_shop_default_limit,
    )

    return FunctionRouter(
        search_service=search_service,
        search_gateway=gateway,
        shop_repository=shop_repository,
        cart_service=CartPersistenceService(session_factory),
        address_service=AddressPersistenceService(session_factory),
        order_service=OrderPersistenceService(session_factory),
        stock_validator=StockValidator(shop_repository),
        order_validator=OrderValidator(shop_repository, delivery_logic_repository),
        fee_calculator=fee_calculator,
        min_landmark_length=config.min_landmark_length,
        max_shops=config.max_shops,
        items_per_shop=config.items_per_shop,
        shop_search_limit=config.shop_search_default_limit,
    )


def build_conversation(
    client: AsyncOpenAI, router: FunctionRouter, config: Optional[Settings] = None
) -> ConversationManager:
    """New conversation using the configured chat model."""
    config = config or settings
    return ConversationManager(
        client,
        router,
        model=config.chat_model,
        temperature=config.chat_temperature,
        max_tokens=config.chat_max_tokens,
        max_tool_iterations=config.max_tool_iterations,
        max_history_messages=config.max_history_messages,
    )


def get_function_router(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    client: AsyncOpenAI = Depends(get_openai_client),
    vector_store: VectorStore = Depends(get_vector_store),
) -> FunctionRouter:
    """Dependency for getting a FunctionRouter."""
    return build_function_router(session_factory, client, vector_store)
