"""
agentloop Result - Explicit success/failure outcome type

Every boundary of the engine (LLM client, ReAct loop, coordinator) returns an
Outcome instead of raising for expected conditions. Exceptions are reserved
for programming errors and cancellation.

Example:
    outcome = await loop.step(messages, tools_provider, "conv1", model="gpt-4o")
    if outcome.is_success:
        print(outcome.value)
    else:
        print(f"failed: {outcome.error}")
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import AgentLoopError, AgentCancelledError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    @property
    def error(self) -> None:
        return None

    @property
    def is_cancelled(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying a typed error."""

    error: AgentLoopError

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    @property
    def value(self) -> None:
        return None

    @property
    def is_cancelled(self) -> bool:
        return isinstance(self.error, AgentCancelledError)

    def unwrap(self):
        raise self.error


Outcome = Union[Success[T], Failure]
