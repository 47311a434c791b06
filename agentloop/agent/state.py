"""
agentloop Agent State - Observable execution state of a coordinator

States:
    Idle -> Thinking -> ExecutingTool(tool_names) -> Thinking -> ...
         -> Completed(response) | Error(message, cause) | Cancelled

Usage:
    subscription = coordinator.state.subscribe()
    async for state in subscription:
        if isinstance(state, Completed):
            break
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class Thinking:
    name = "thinking"


@dataclass(frozen=True)
class ExecutingTool:
    tool_names: Tuple[str, ...] = ()
    name = "executing_tool"


@dataclass(frozen=True)
class Completed:
    response: str
    name = "completed"


@dataclass(frozen=True)
class Error:
    message: str
    cause: Optional[BaseException] = None
    name = "error"


@dataclass(frozen=True)
class Cancelled:
    name = "cancelled"


AgentState = Union[Idle, Thinking, ExecutingTool, Completed, Error, Cancelled]

TERMINAL_STATES = (Completed, Error, Cancelled)

# end-of-stream marker queued by close()
_CLOSED = object()


class StateSubscription:
    """Async iterator over every state emitted after subscribing."""

    def __init__(self, flow: "StateFlow") -> None:
        self._flow = flow
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._exhausted = False

    def _push(self, state: AgentState) -> None:
        self._queue.put_nowait(state)

    def __aiter__(self) -> "StateSubscription":
        return self

    async def __anext__(self) -> AgentState:
        if self._exhausted:
            raise StopAsyncIteration
        state = await self._queue.get()
        if state is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        return state

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._flow._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> "StateSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class StateFlow:
    """Holds the current AgentState and fans changes out to subscribers.

    Setting a value equal to the current one is a no-op.
    """

    def __init__(self, initial: AgentState = None) -> None:
        self._value: AgentState = initial if initial is not None else Idle()
        self._subscribers: List[StateSubscription] = []

    @property
    def value(self) -> AgentState:
        return self._value

    def set(self, state: AgentState) -> bool:
        """Update the state; returns False when *state* equals the current value."""
        if state == self._value:
            return False
        self._value = state
        for subscriber in list(self._subscribers):
            subscriber._push(state)
        return True

    def subscribe(self) -> StateSubscription:
        subscription = StateSubscription(self)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: StateSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
