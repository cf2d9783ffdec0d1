"""Chat, tool execution and cart endpoints."""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from openai import AsyncOpenAI
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import async_sessionmaker

from chatcommerce.core.config import settings
from chatcommerce.core.dependencies import build_conversation, get_function_router, get_openai_client
from chatcommerce.db.database import get_session_factory
from chatcommerce.services.agent.conversation import clear_conversation, get_conversation
from chatcommerce.services.agent.models import ExecutionContext
from chatcommerce.services.agent.router import FunctionRouter
from chatcommerce.services.ordering.models import CartView, DeliveryAddress
from chatcommerce.services.persistence.carts import CartPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class ChatMessageRequest(BaseModel):
    """A user message with the client's current location."""

    message: str = Field(min_length=1)
    consumer_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[DeliveryAddress] = None


class FunctionCallRequest(BaseModel):
    """Direct execution of one tool call."""

    session_id: str
    args: Dict[str, Any] = Field(default_factory=dict)
    consumer_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[DeliveryAddress] = None


def _context(session_id: str, body) -> ExecutionContext:
    # The session doubles as the consumer until the client sends its own id
    return ExecutionContext(
        consumer_id=body.consumer_id or session_id,
        address=body.address,
        latitude=body.latitude,
        longitude=body.longitude,
    )


@router.post("/api/chat/{session_id}/messages")
async def send_message(
    session_id: str,
    body: ChatMessageRequest,
    client: AsyncOpenAI = Depends(get_openai_client),
    function_router: FunctionRouter = Depends(get_function_router),
):
    """Send a message and get the assistant's reply with any tool calls it made."""
    logger.info(f"[CHAT] Session {session_id}: '{body.message}'")
    conversation = get_conversation(
        session_id,
        lambda: build_conversation(client, function_router),
        max_sessions=settings.max_conversation_sessions,
    )
    # Pick up the request's collaborators for conversations started earlier
    conversation.router = function_router

    turn = await conversation.send_message(body.message, _context(session_id, body))
    return {
        "response": turn.response,
        "function_calls": [
            {"name": call.name, "arguments": call.arguments, "result": call.result.to_message()}
            for call in turn.function_calls
        ],
    }


@router.delete("/api/chat/{session_id}")
async def delete_conversation(session_id: str):
    """Forget a conversation."""
    cleared = clear_conversation(session_id)
    logger.info(f"[CHAT] Session {session_id} cleared: {cleared}")
    return {"session_id": session_id, "cleared": cleared}


@router.post("/api/functions/{function_name}")
async def execute_function(
    function_name: str,
    body: FunctionCallRequest,
    function_router: FunctionRouter = Depends(get_function_router),
):
    """Run a tool call directly, e.g. when the client replays an action."""
    result = await function_router.execute(function_name, body.args, _context(body.session_id, body))
    return result.to_message()


@router.get("/api/carts/{consumer_id}", response_model=List[CartView])
async def get_carts(
    consumer_id: str,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Get all of a consumer's carts."""
    try:
        carts = await CartPersistenceService(session_factory).get_all_carts(consumer_id)
    except Exception as e:
        logger.error(
            f"[CARTS] Error fetching carts for {consumer_id}: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail="Error fetching carts")
    logger.info(f"[CARTS] {len(carts)} cart(s) for consumer {consumer_id}")
    return carts
