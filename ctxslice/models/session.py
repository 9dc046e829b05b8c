"""Chat session model persisted to the sessions document."""

from __future__ import annotations

import time
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ctxslice.models.file_tree import AppFileTree
from ctxslice.models.message import ChatMessage, Role


def _now_millis() -> int:
    return int(time.time() * 1000)


class ChatSession(BaseModel):
    """A conversation together with the code context curated for it.

    ``relevant_workspaces`` tracks which open workspaces currently show this
    session; it is runtime state and is not persisted.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str = "chat"
    workspace: Optional[str] = None
    start_time: int = Field(default_factory=_now_millis)
    app_file_tree: AppFileTree = Field(default_factory=AppFileTree)
    messages: list[ChatMessage] = Field(default_factory=list)
    relevant_workspaces: set[str] = Field(default_factory=set, exclude=True)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)

    def truncate_after(self, index: int) -> bool:
        """Drop every message after ``index``.

        Returns False (and changes nothing) when ``index`` is out of range or
        already the last message.
        """
        if index < 0 or index >= len(self.messages) - 1:
            return False
        del self.messages[index + 1 :]
        return True

    def total_tokens(self) -> int:
        return sum(m.token_estimate() for m in self.messages)

    def to_api_messages(self) -> list[dict[str, str]]:
        return [m.to_api_message() for m in self.messages]

    def export_chat_history(self) -> str:
        """Render the message log as plain text, one block per message."""
        blocks = []
        for message in self.messages:
            if message.role == Role.SYSTEM:
                continue
            blocks.append(f"{message.role.value}:\n{message.content}")
        return "\n\n".join(blocks)

    def title(self) -> str:
        """Short title from the first user message."""
        for message in self.messages:
            if message.role != Role.USER:
                continue
            content = message.content.strip()
            if not content:
                continue
            for sep in (".", "\n", "?", "!"):
                idx = content.find(sep)
                if 0 < idx < 80:
                    content = content[:idx]
                    break
            return content[:50].strip() or "Untitled"
        return "Untitled"
