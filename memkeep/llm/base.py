"""Text generation provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Message:
    """A chat message."""

    role: str  # system, user, assistant
    content: str


@dataclass
class GenerateOptions:
    """Sampling parameters for a generation call."""

    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    stop: List[str] = field(default_factory=list)


class LLMProvider(ABC):
    """Generates text from a prompt or a message history."""

    @abstractmethod
    def generate_with_messages(self, messages: List[Message], options: Optional[GenerateOptions] = None) -> str:
        """Generate a reply to a message history."""

    def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> str:
        """Generate a reply to a single user prompt."""
        return self.generate_with_messages([Message(role="user", content=prompt)], options)

    def close(self) -> None:
        """Release provider resources. No-op by default."""
