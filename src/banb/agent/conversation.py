"""
agent/conversation.py

Immutable conversation value used for the two-phase tool-calling exchange.
Each `with_*` returns a new Conversation, so the input to every model call can
be rebuilt and inspected on its own.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple, Union


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SystemTurn:
    content: str


@dataclass(frozen=True)
class UserTurn:
    content: str


@dataclass(frozen=True)
class AssistantTurn:
    content: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    # provider-native content, replayed verbatim when present
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ToolResultTurn:
    call_id: str
    name: str
    content: str


Turn = Union[SystemTurn, UserTurn, AssistantTurn, ToolResultTurn]


@dataclass(frozen=True)
class ModelReply:
    """What the reasoning model answered: final text and/or tool-call requests."""

    text: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    raw: Any = field(default=None, compare=False, repr=False)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def as_turn(self) -> AssistantTurn:
        return AssistantTurn(content=self.text, tool_calls=self.tool_calls, raw=self.raw)


@dataclass(frozen=True)
class Conversation:
    turns: Tuple[Turn, ...] = ()

    @classmethod
    def start(cls, system_prompt: str, user_message: str) -> "Conversation":
        return cls((SystemTurn(system_prompt), UserTurn(user_message)))

    def append(self, *turns: Turn) -> "Conversation":
        return Conversation(self.turns + tuple(turns))

    def with_assistant(self, reply: ModelReply) -> "Conversation":
        return self.append(reply.as_turn())

    def with_tool_results(self, results: Iterable[ToolResultTurn]) -> "Conversation":
        return self.append(*results)

    @property
    def system_prompt(self) -> Optional[str]:
        for turn in self.turns:
            if isinstance(turn, SystemTurn):
                return turn.content
        return None

    def non_system(self) -> Tuple[Turn, ...]:
        return tuple(t for t in self.turns if not isinstance(t, SystemTurn))

    def __len__(self) -> int:
        return len(self.turns)
