"""Item search gateway: vector similarity first, text match as fallback."""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from chatcommerce.core.errors import ErrorKind, ServiceResult
from chatcommerce.services.ai.embeddings import EmbeddingService
from chatcommerce.services.search.models import SearchItemResult
from chatcommerce.services.search.vector_store import VectorStore, is_transient_error
from chatcommerce.services.shops.repository import ShopRepository

logger = logging.getLogger(__name__)


class SearchStrategy(ABC):
    """One way of finding items for a query."""

    name: str = "strategy"

    @abstractmethod
    async def search(
        self, shop_ids: List[str], query: str, limit: int
    ) -> ServiceResult[List[SearchItemResult]]:
        """Search the given shops. A single-element list means a per-shop search."""
        pass


class VectorSearchStrategy(SearchStrategy):
    """Embeds the query and calls the similarity functions of the vector store."""

    name = "vector"

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        db_min_similarity: float,
        max_attempts: int,
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.db_min_similarity = db_min_similarity
        self.max_attempts = max(1, max_attempts)

    async def search(
        self, shop_ids: List[str], query: str, limit: int
    ) -> ServiceResult[List[SearchItemResult]]:
        embedding_result = await self.embedding_service.generate_embedding(query)
        if not embedding_result.is_ok:
            return ServiceResult.fail(ErrorKind.EMBEDDING_FAILURE, embedding_result.error)

        embedding = embedding_result.data
        # Over-fetch so client-side filtering still leaves enough to rank
        rpc_limit = limit * 2

        for attempt in range(1, self.max_attempts + 1):
            try:
                if len(shop_ids) == 1:
                    rows = await self.vector_store.search_items_by_similarity(
                        shop_ids[0], embedding, rpc_limit, self.db_min_similarity
                    )
                else:
                    rows = await self.vector_store.search_items_across_shops_by_similarity(
                        shop_ids, embedding, rpc_limit, self.db_min_similarity
                    )
            except Exception as e:
                if is_transient_error(e) and attempt < self.max_attempts:
                    logger.warning(
                        f"[VECTOR SEARCH] Transient error on attempt {attempt}/{self.max_attempts} "
                        f"for '{query}': {type(e).__name__}: {e}. Resetting connection"
                    )
                    await self.vector_store.reset_connection()
                    continue
                logger.warning(f"[VECTOR SEARCH] RPC failed for '{query}': {type(e).__name__}: {e}")
                return ServiceResult.fail(ErrorKind.VECTOR_SEARCH_FAILURE, str(e) or type(e).__name__)

            if rows:
                return ServiceResult.ok([SearchItemResult.from_row(row) for row in rows])

            if attempt < self.max_attempts:
                logger.warning(
                    f"[VECTOR SEARCH] Empty result for '{query}' on attempt {attempt}, "
                    f"retrying with a fresh connection"
                )
                await self.vector_store.reset_connection()

        return ServiceResult.fail(
            ErrorKind.VECTOR_SEARCH_FAILURE, f"No vector results for '{query}'"
        )


class TextSearchStrategy(SearchStrategy):
    """Case-insensitive substring match on item names with a fixed score."""

    name = "text"

    def __init__(self, shop_repository: ShopRepository, similarity: float):
        self.shop_repository = shop_repository
        self.similarity = similarity

    async def search(
        self, shop_ids: List[str], query: str, limit: int
    ) -> ServiceResult[List[SearchItemResult]]:
        try:
            items = await self.shop_repository.text_search_items(shop_ids, query, limit)
        except Exception as e:
            logger.error(f"[TEXT SEARCH] Failed for '{query}': {type(e).__name__}: {e}", exc_info=True)
            return ServiceResult.fail(ErrorKind.VECTOR_SEARCH_FAILURE, str(e) or type(e).__name__)

        return ServiceResult.ok(
            [
                SearchItemResult(
                    item_id=item.id,
                    name=item.name,
                    description=item.description,
                    image_url=item.image_url,
                    price_cents=item.price_cents,
                    is_active=item.is_active,
                    similarity=self.similarity,
                    shop_id=item.shop_id,
                    shop_name=item.shop.name if item.shop is not None else None,
                )
                for item in items
            ]
        )


class VectorSearchGateway:
    """Runs the search strategies in order and filters the first usable result."""

    def __init__(
        self,
        strategies: Sequence[SearchStrategy],
        shop_min_similarity: float = 0.6,
        cross_shop_min_similarity: float = 0.7,
    ):
        self.strategies = list(strategies)
        self.shop_min_similarity = shop_min_similarity
        self.cross_shop_min_similarity = cross_shop_min_similarity

    async def search_in_shop(
        self,
        shop_id: str,
        query: str,
        limit: int = 10,
        min_similarity: Optional[float] = None,
    ) -> ServiceResult[List[SearchItemResult]]:
        """Search one shop's items."""
        threshold = self.shop_min_similarity if min_similarity is None else min_similarity
        return await self._run([shop_id], query, limit, threshold)

    async def search_across_shops(
        self,
        shop_ids: List[str],
        query: str,
        limit: int = 50,
        min_similarity: Optional[float] = None,
    ) -> ServiceResult[List[SearchItemResult]]:
        """Search several shops at once."""
        if not shop_ids:
            return ServiceResult.ok([])
        threshold = self.cross_shop_min_similarity if min_similarity is None else min_similarity
        return await self._run(list(shop_ids), query, limit, threshold)

    async def _run(
        self, shop_ids: List[str], query: str, limit: int, min_similarity: float
    ) -> ServiceResult[List[SearchItemResult]]:
        query = query.strip()
        if not query or limit <= 0:
            return ServiceResult.ok([])

        last_failure: Optional[ServiceResult] = None
        for strategy in self.strategies:
            result = await strategy.search(shop_ids, query, limit)
            if result.is_ok:
                items = [item for item in result.data if item.similarity >= min_similarity]
                items.sort(key=lambda item: item.similarity, reverse=True)
                logger.debug(
                    f"[SEARCH GATEWAY] '{query}' via {strategy.name}: "
                    f"{len(result.data)} rows, {len(items)} above {min_similarity}"
                )
                return ServiceResult.ok(items[:limit])

            logger.warning(
                f"[SEARCH GATEWAY] {strategy.name} search failed for '{query}' "
                f"({result.kind.value if result.kind else 'error'}): {result.error}"
            )
            last_failure = result

        if last_failure is not None:
            return last_failure
        return ServiceResult.ok([])
