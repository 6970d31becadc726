"""
Simulated chat counterpart.

After a local send the agent "types" for a random delay, then appends a
canned reply authored by the counterpart. Pending replies are dropped when
the chat is switched.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, Sequence

from univibe.core.exceptions import StoreUnavailableError
from univibe.core.logger import logger
from univibe.interfaces.message_store import IMessageStore
from univibe.models.chat import ChatMessage
from univibe.models.enums import ReplyAgentState
from univibe.utils.datetime_utils import SenderClock

DEFAULT_REPLY_PHRASES: tuple[str, ...] = (
    "That sounds awesome! Tell me more.",
    "I've been working on something similar in React.",
    "Haha, totally agree! 😂",
    "Are you going to the hackathon this weekend?",
    "Just saw your profile, impressive stats!",
    "Let's connect on LinkedIn too.",
    "That is super cool.",
)


class ReplyAgent:
    """Idle -> Typing -> Idle responder with cancellable pending replies."""

    def __init__(
        self,
        store: IMessageStore,
        phrases: Sequence[str] = DEFAULT_REPLY_PHRASES,
        min_delay_ms: int = 1500,
        jitter_ms: int = 1500,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[SenderClock] = None,
        on_state_change: Optional[Callable[[ReplyAgentState], None]] = None,
    ):
        if not phrases:
            raise ValueError("phrases must not be empty")
        if min_delay_ms < 0 or jitter_ms < 0:
            raise ValueError("delays must not be negative")
        self._store = store
        self._phrases = tuple(phrases)
        self._min_delay_ms = min_delay_ms
        self._jitter_ms = jitter_ms
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock or SenderClock()
        self._on_state_change = on_state_change
        self._state = ReplyAgentState.IDLE
        self._pending: set[asyncio.Task] = set()
        self._generation = 0

    @property
    def state(self) -> ReplyAgentState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def phrases(self) -> tuple[str, ...]:
        return self._phrases

    def _set_state(self, state: ReplyAgentState) -> None:
        if state == self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def draw_delay_ms(self) -> float:
        """Delay drawn uniformly from [min_delay, min_delay + jitter]."""
        return self._rng.uniform(self._min_delay_ms, self._min_delay_ms + self._jitter_ms)

    def pick_phrase(self) -> str:
        return self._rng.choice(self._phrases)

    def schedule_reply(self, session_id: str, counterpart_id: str) -> asyncio.Task:
        """
        Schedule a reply from ``counterpart_id`` into ``session_id``.

        Returns:
            Task resolving to the appended message, or None if the reply was
            suppressed or could not be stored
        """
        delay_ms = self.draw_delay_ms()
        task = asyncio.get_running_loop().create_task(
            self._reply_after(session_id, counterpart_id, delay_ms, self._generation)
        )
        self._pending.add(task)
        task.add_done_callback(self._forget)
        self._set_state(ReplyAgentState.TYPING)
        logger.debug(f"Reply from {counterpart_id} scheduled in {delay_ms:.0f} ms")
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not self._pending:
            self._set_state(ReplyAgentState.IDLE)

    async def _reply_after(
        self,
        session_id: str,
        counterpart_id: str,
        delay_ms: float,
        generation: int,
    ) -> Optional[ChatMessage]:
        await self._sleep(delay_ms / 1000)
        self._forget(asyncio.current_task())
        if generation != self._generation:
            return None

        message = ChatMessage(
            sender_id=counterpart_id,
            text=self.pick_phrase(),
            timestamp=self._clock.next(counterpart_id),
        )
        try:
            await self._store.append(session_id, message)
        except StoreUnavailableError as e:
            logger.warning(f"Simulated reply to {session_id} dropped: {e}")
            return None
        return message

    def cancel(self) -> int:
        """Drop every pending reply. Returns how many were dropped."""
        self._generation += 1
        pending = list(self._pending)
        self._pending.clear()
        for task in pending:
            task.cancel()
        self._set_state(ReplyAgentState.IDLE)
        if pending:
            logger.debug(f"Cancelled {len(pending)} pending replies")
        return len(pending)
