"""Conversation manager running the tool-use loop."""
import json
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from chatcommerce.core.errors import ErrorKind
from chatcommerce.services.agent.models import ExecutionContext, FunctionCallResult
from chatcommerce.services.agent.prompt import get_system_prompt
from chatcommerce.services.agent.router import FunctionRouter
from chatcommerce.services.agent.schemas import FUNCTION_SCHEMAS

logger = logging.getLogger(__name__)

LLM_ERROR_RESPONSE = "I'm having trouble processing that. Could you try again?"
TOOL_LIMIT_RESPONSE = "Sorry, I couldn't finish that request. Could you try again?"


class FunctionCallRecord(BaseModel):
    """A tool call made while answering one message."""

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: FunctionCallResult


class ConversationTurn(BaseModel):
    """Reply to one user message."""

    response: str
    function_calls: List[FunctionCallRecord] = Field(default_factory=list)


class ConversationManager:
    """Holds one conversation's history and answers messages with tool calls."""

    def __init__(
        self,
        client: AsyncOpenAI,
        router: FunctionRouter,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        max_tool_iterations: int = 5,
        max_history_messages: int = 40,
    ):
        self.client = client
        self.router = router
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_tool_iterations = max_tool_iterations
        self.max_history_messages = max_history_messages
        self.messages: List[Dict[str, Any]] = [{"role": "system", "content": get_system_prompt()}]

    async def send_message(self, text: str, context: ExecutionContext) -> ConversationTurn:
        """Answer a user message, executing any tool calls the model makes."""
        self.messages = self.get_recent_messages(self.max_history_messages)
        self.messages[0] = {"role": "system", "content": get_system_prompt(context.address)}
        self.messages.append({"role": "user", "content": text})

        logger.info("=" * 80)
        logger.info(f"[CONVERSATION] Consumer {context.consumer_id}: '{text}'")

        function_calls: List[FunctionCallRecord] = []
        for iteration in range(self.max_tool_iterations):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=self.messages,
                    tools=FUNCTION_SCHEMAS,
                    tool_choice="auto",
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
            except Exception as e:
                logger.error(f"[CONVERSATION] LLM call failed: {type(e).__name__}: {e}", exc_info=True)
                return ConversationTurn(response=LLM_ERROR_RESPONSE, function_calls=function_calls)

            message = response.choices[0].message
            tool_calls = message.tool_calls or []
            if not tool_calls:
                content = message.content or ""
                self.messages.append({"role": "assistant", "content": content})
                logger.info(f"[CONVERSATION] Reply after {iteration} tool round(s): '{content}'")
                logger.info("=" * 80)
                return ConversationTurn(response=content, function_calls=function_calls)

            self.messages.append(
                {
                    "role": "assistant",
                    "content": message.content or "",
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.function.name, "arguments": call.function.arguments},
                        }
                        for call in tool_calls
                    ],
                }
            )
            for call in tool_calls:
                record = await self._run_tool_call(call.function.name, call.function.arguments, context)
                function_calls.append(record)
                self.messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(record.result.to_message()),
                    }
                )

        logger.warning(f"[CONVERSATION] Stopped after {self.max_tool_iterations} tool rounds")
        self.messages.append({"role": "assistant", "content": TOOL_LIMIT_RESPONSE})
        return ConversationTurn(response=TOOL_LIMIT_RESPONSE, function_calls=function_calls)

    async def _run_tool_call(
        self, name: str, raw_arguments: Optional[str], context: ExecutionContext
    ) -> FunctionCallRecord:
        try:
            arguments = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError:
            logger.warning(f"[CONVERSATION] Malformed arguments for {name}: {raw_arguments}")
            return FunctionCallRecord(
                name=name,
                result=FunctionCallResult.failure(ErrorKind.INVALID_ARGUMENTS, "Arguments are not valid JSON"),
            )
        if not isinstance(arguments, dict):
            arguments = {}
        result = await self.router.execute(name, arguments, context)
        return FunctionCallRecord(name=name, arguments=arguments, result=result)

    def clear_history(self) -> None:
        """Forget the conversation, keeping the system prompt."""
        self.messages = self.messages[:1]

    def get_recent_messages(self, count: int = 10) -> List[Dict[str, Any]]:
        """Last count messages, always starting with the system prompt."""
        recent = self.messages[1:][-(count - 1):] if count > 1 else []
        # Tool results must follow the assistant message that requested them
        while recent and recent[0]["role"] == "tool":
            recent = recent[1:]
        return [self.messages[0], *recent]


# Module-level conversation storage (persists across requests)
# In production, use Redis or similar
_sessions: "OrderedDict[str, ConversationManager]" = OrderedDict()


def get_conversation(
    session_id: str, factory: Callable[[], ConversationManager], max_sessions: Optional[int] = None
) -> ConversationManager:
    """Get the session's conversation, creating it on first use.

    When max_sessions is set, the least recently used conversations are dropped
    to stay within it.
    """
    conversation = _sessions.get(session_id)
    if conversation is None:
        conversation = factory()
        _sessions[session_id] = conversation
        logger.info(f"[CONVERSATION] Started session {session_id}")
    _sessions.move_to_end(session_id)

    while max_sessions is not None and len(_sessions) > max_sessions:
        evicted, _ = _sessions.popitem(last=False)
        logger.info(f"[CONVERSATION] Evicted idle session {evicted}")
    return conversation


def clear_conversation(session_id: str) -> bool:
    """Drop a session's conversation. Returns False when there was none."""
    return _sessions.pop(session_id, None) is not None
