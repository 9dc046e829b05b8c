"""Chat message models."""

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """Message role enum."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """Represents a single message in the conversation."""

    role: Role
    content: str

    def token_estimate(self) -> int:
        """Estimate token count (rough approximation)."""
        # Rough estimate: ~4 chars per token
        return len(self.content) // 4

    def to_api_message(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}
