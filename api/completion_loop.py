"""
Tool-orchestrated completion loop.

Resolves one user turn into zero or more tool executions followed by exactly
one final assistant turn. The loop is a small state machine with a hard cap
on round-trips so a model that keeps requesting tools cannot spin forever.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING

from api import CompletionError, CompletionMessage
from api.tools import IMAGE_TOOL_NAME, ToolError, ToolRegistry, default_registry
from models import ChatSettings, SessionState, Turn, TurnRole
import constants as C

if TYPE_CHECKING:
    from conversation_store import ConversationStore

logger = logging.getLogger(__name__)


class LoopState(Enum):
    AWAITING_RESPONSE = "awaiting-response"
    EXECUTING_TOOLS = "executing-tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LoopResult:
    """Turns produced for one user turn, in append order."""
    turns: list[Turn] = field(default_factory=list)
    state: LoopState = LoopState.DONE
    rounds: int = 0
    error: Optional[str] = None

    @property
    def final(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None

    @property
    def tool_results(self) -> list[Turn]:
        return [t for t in self.turns if t.role == TurnRole.TOOL]


class CompletionLoop:
    """Drives the multi-round exchange with the completion service."""

    def __init__(
        self,
        client,
        registry: Optional[ToolRegistry] = None,
        settings: Optional[ChatSettings] = None,
    ):
        """
        Args:
            client: Object with an async ``complete(messages, tools, settings)``
                returning a ``CompletionMessage``.
            registry: Callable tools; defaults to the image tool only.
            settings: Sampling parameters and persona.
        """
        self.client = client
        self.registry = registry if registry is not None else default_registry()
        self.settings = settings or ChatSettings()

    def build_messages(self, history: list[Turn]) -> list[dict]:
        """Fresh system turn followed by the visible history."""
        messages = [Turn.system(self.settings.system_prompt).to_api()]
        messages.extend(t.to_api() for t in history if t.role != TurnRole.SYSTEM)
        return messages

    async def run(self, history: list[Turn]) -> LoopResult:
        """Run the loop for a history ending in the new user turn.

        Never raises for service failures: they end in the FAILED state with
        a single fallback assistant turn.
        """
        outgoing = self.build_messages(history)
        declarations = self.registry.declarations() or None
        max_rounds = max(1, int(self.settings.max_rounds))

        state = LoopState.AWAITING_RESPONSE
        new_turns: list[Turn] = []
        response: Optional[CompletionMessage] = None
        image_url: Optional[str] = None
        rounds = 0

        try:
            while True:
                if state == LoopState.AWAITING_RESPONSE:
                    if rounds >= max_rounds:
                        logger.warning("Tool round limit (%d) reached without final answer", max_rounds)
                        new_turns.append(Turn.assistant(C.FALLBACK_ROUND_LIMIT, image_url=image_url))
                        return LoopResult(new_turns, LoopState.DONE, rounds, "round limit reached")
                    rounds += 1
                    response = await self.client.complete(outgoing, declarations, self.settings)
                    if response.tool_calls:
                        state = LoopState.EXECUTING_TOOLS
                        continue
                    content = (response.content or "").strip()
                    if not content:
                        content = C.IMAGE_CAPTION if image_url else C.FALLBACK_EMPTY_REPLY
                    new_turns.append(Turn.assistant(content, image_url=image_url))
                    logger.info("Loop finished after %d round(s)", rounds)
                    return LoopResult(new_turns, LoopState.DONE, rounds)

                # EXECUTING_TOOLS: assistant call turn first, then one result per call
                call_turn = Turn(
                    role=TurnRole.ASSISTANT,
                    content=response.content or "",
                    tool_calls=list(response.tool_calls),
                )
                outgoing.append(call_turn.to_api())
                new_turns.append(call_turn)
                for call in response.tool_calls:
                    result_text = self._execute_tool_safe(call.name, call.arguments)
                    if call.name == IMAGE_TOOL_NAME and result_text.startswith("http"):
                        image_url = result_text
                    result_turn = Turn.tool_result(call, result_text)
                    outgoing.append(result_turn.to_api())
                    new_turns.append(result_turn)
                logger.info(
                    "Completed tool round %d with %d call(s)",
                    rounds,
                    len(response.tool_calls),
                )
                state = LoopState.AWAITING_RESPONSE
        except CompletionError as e:
            logger.error("Completion failed: %s", e)
            return self._failed(rounds, str(e))
        except Exception as e:
            logger.exception("Unexpected completion error: %s", e)
            return self._failed(rounds, f"{type(e).__name__}: {e}")

    def begin(
        self,
        text: str,
        store: "ConversationStore",
        session: Optional[SessionState] = None,
    ) -> Optional[list[Turn]]:
        """Record a user turn and mark the session busy.

        Runs on the UI thread before ``run``.

        Returns:
            The history to send, or None without touching the store when the
            text is blank or a turn is already in flight.
        """
        if not text or not text.strip():
            logger.debug("Ignoring empty submission")
            return None
        if session is not None and session.is_loading:
            logger.debug("Ignoring submission while a turn is in flight")
            return None

        store.append(Turn.user(text.strip()))
        if session is not None:
            session.is_loading = True
        return store.turns

    def finish(
        self,
        result: Optional[LoopResult],
        store: "ConversationStore",
        session: Optional[SessionState] = None,
    ) -> None:
        """Append the loop's turns and clear the busy flag."""
        if session is not None:
            session.is_loading = False
        if result is not None:
            store.extend(result.turns)

    async def submit(
        self,
        text: str,
        store: "ConversationStore",
        session: Optional[SessionState] = None,
    ) -> Optional[LoopResult]:
        """Append a user turn, run the loop and append its turns."""
        history = self.begin(text, store, session)
        if history is None:
            return None
        result = None
        try:
            result = await self.run(history)
        finally:
            self.finish(result, store, session)
        return result

    def _execute_tool_safe(self, name: str, raw_args: str) -> str:
        """Execute a tool and return safe string output for model context."""
        try:
            return self.registry.execute(name, raw_args)
        except ToolError as e:
            logger.warning("Tool call rejected: %s", e)
            return f"Tool execution failed: {e}"
        except Exception as e:
            logger.warning("Tool execution failed for %s: %s", name, e)
            return f"Tool execution failed: {e}"

    def _failed(self, rounds: int, error: str) -> LoopResult:
        return LoopResult(
            [Turn.assistant(C.FALLBACK_SERVICE_ERROR)],
            LoopState.FAILED,
            rounds,
            error,
        )
