"""Generation client — one role turn against the upstream text-generation service.

Two backend call shapes, tried in order as an explicit strategy list:

    responses  — OpenAI Responses API; reasoning-capable model families only.
                 Carries the optional reasoning effort.
    chat       — conventional chat completions via LangChain's ChatOpenAI.
                 Reasoning-family models are substituted with the configured
                 fallback model.

Each strategy returns text, or ``None`` to hand over to the next one. An empty
string after the last strategy is a valid result. No retries here; callers
wrap ``generate`` in ``with_retry``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI

from copilot.agents.extract import extract_text, message_text

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

    from copilot.config import CopilotConfig

logger = logging.getLogger(__name__)

# gpt-5*, o1*, o3*, o4-mini, ...
REASONING_MODEL_RE = re.compile(r"^(gpt-5|o\d)", re.IGNORECASE)

RESPONSES_MODE = "responses"
CHAT_MODE = "chat"


@dataclass(frozen=True)
class RoleInvocation:
    """Everything needed for one upstream call. Stateless, one per call."""

    role: str
    system: str
    user: str
    model: str
    effort: str | None = None


Strategy = Callable[[RoleInvocation], Awaitable[str | None]]
ChatModelFactory = Callable[[str], "BaseChatModel"]


class MissingAPIKeyError(RuntimeError):
    """No upstream credential configured. Retrying cannot fix it."""

    retryable = False


def is_reasoning_model(model: str) -> bool:
    """True for model families served through the Responses API with reasoning."""
    return bool(REASONING_MODEL_RE.match((model or "").strip()))


def fallback_model_for(model: str, fallback: str) -> str:
    """Model name to use in conventional chat mode."""
    return fallback if is_reasoning_model(model) else model


class GenerationClient:
    """Shared across requests; holds no per-run state."""

    def __init__(
        self,
        config: CopilotConfig,
        *,
        openai_client: Any | None = None,
        chat_model_factory: ChatModelFactory | None = None,
    ) -> None:
        self.config = config
        self._openai = openai_client
        self._chat_model_factory = chat_model_factory or self._default_chat_model
        self._chat_models: dict[str, BaseChatModel] = {}

    # -----------------------------------------------------------------------
    # Upstream handles
    # -----------------------------------------------------------------------

    def _api_key(self) -> str:
        if not self.config.openai_api_key:
            raise MissingAPIKeyError("OPENAI_API_KEY environment variable is not set")
        return self.config.openai_api_key

    def _ensure_openai(self) -> Any:
        if self._openai is None:
            self._openai = AsyncOpenAI(
                api_key=self._api_key(),
                timeout=self.config.request_timeout_s,
                max_retries=0,
            )
        return self._openai

    def _default_chat_model(self, model: str) -> BaseChatModel:
        return ChatOpenAI(
            model=model,
            temperature=self.config.temperature,
            api_key=self._api_key(),
            timeout=self.config.request_timeout_s,
            max_retries=0,
        )

    def _chat_model(self, model: str) -> BaseChatModel:
        if model not in self._chat_models:
            self._chat_models[model] = self._chat_model_factory(model)
        return self._chat_models[model]

    # -----------------------------------------------------------------------
    # Strategies
    # -----------------------------------------------------------------------

    def strategies(self, invocation: RoleInvocation) -> list[tuple[str, Strategy]]:
        """Ordered call shapes for this invocation's model."""
        if is_reasoning_model(invocation.model):
            return [(RESPONSES_MODE, self._call_responses), (CHAT_MODE, self._call_chat)]
        return [(CHAT_MODE, self._call_chat)]

    async def _call_responses(self, invocation: RoleInvocation) -> str | None:
        payload: dict[str, Any] = {
            "model": invocation.model,
            "input": [
                {"role": "system", "content": invocation.system},
                {"role": "user", "content": invocation.user},
            ],
        }
        if invocation.effort:
            payload["reasoning"] = {"effort": invocation.effort}

        client = self._ensure_openai()
        # any failure of the call itself hands over to chat mode
        try:
            response = await client.responses.create(**payload)
        except Exception as e:
            logger.warning(
                f"Role '{invocation.role}' responses call failed on {invocation.model}: "
                f"{type(e).__name__}: {e}"
            )
            return None

        return extract_text(response) or None

    async def _call_chat(self, invocation: RoleInvocation) -> str | None:
        model = fallback_model_for(invocation.model, self.config.fallback_model)
        llm = self._chat_model(model)
        response = await llm.ainvoke(
            [SystemMessage(content=invocation.system), HumanMessage(content=invocation.user)]
        )
        return message_text(response.content) or None

    # -----------------------------------------------------------------------
    # Entry point
    # -----------------------------------------------------------------------

    async def generate(self, invocation: RoleInvocation) -> str:
        """Run the strategies in order and return the first non-empty text, else ``""``."""
        for mode, strategy in self.strategies(invocation):
            logger.info(f"Role '{invocation.role}' calling {invocation.model} ({mode} mode)")
            text = await strategy(invocation)
            if text:
                return text
            logger.warning(f"Role '{invocation.role}' got no text in {mode} mode")
        return ""
