from __future__ import annotations
import base64
from dataclasses import dataclass
from typing import List, Optional, Union
from pydantic import BaseModel, Field


class ContentChunk(BaseModel):
    type: str = "text"
    text: Optional[str] = None


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Union[str, List[ContentChunk], None] = None

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content.strip()
        if not self.content:
            return ""
        return "".join(c.text or "" for c in self.content if c.type == "text").strip()


class ChatChoice(BaseModel):
    index: int = 0
    message: Optional[ChatMessage] = None


class ChatCompletion(BaseModel):
    choices: List[ChatChoice] = Field(default_factory=list)

    def first_text(self) -> str:
        if not self.choices or self.choices[0].message is None:
            return ""
        return self.choices[0].message.text()


@dataclass(frozen=True)
class ImageReference:
    """An image given either inline (data: URL) or by a fetchable remote URL."""
    url: str
    source_label: str

    @classmethod
    def from_bytes(
        cls, data: bytes, mime_type: str = "image/jpeg", name: Optional[str] = None
    ) -> "ImageReference":
        encoded = base64.b64encode(data).decode("ascii")
        return cls(url=f"data:{mime_type};base64,{encoded}", source_label=name or "uploaded image")

    @classmethod
    def from_url(cls, url: str) -> "ImageReference":
        return cls(url=url, source_label=url)

    @property
    def is_inline(self) -> bool:
        return self.url.startswith("data:")
