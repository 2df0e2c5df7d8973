"""
Canonical data shapes shared by the stores, the generation client and the
conversation controller.

Messages and sessions serialize to the persisted JSON shape
({sender, text, imageUrl?, videoUrl?} / {id, title, messages}); optional keys
are omitted when absent so saved files stay stable across load/save cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from genchat.errors import ClassifiedError

Sender = Literal["user", "model"]


@dataclass
class Message:
    sender: Sender
    text: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"sender": self.sender, "text": self.text}
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        if self.video_url is not None:
            data["videoUrl"] = self.video_url
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        sender = data["sender"]
        if sender not in ("user", "model"):
            raise ValueError(f"Unknown sender: {sender!r}")
        return cls(
            sender=sender,
            text=str(data.get("text", "")),
            image_url=data.get("imageUrl"),
            video_url=data.get("videoUrl"),
        )


@dataclass
class ChatSession:
    id: str
    title: str
    messages: list[Message] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )


@dataclass(frozen=True)
class ImageAttachment:
    """An image ready to be sent inline: base64 payload plus its MIME type."""

    data: str
    mime_type: str
    source_url: Optional[str] = None


class Feature(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class FeatureAvailability:
    """
    Sticky gates for paid features. Each flag starts available and can only
    ever be switched off; there is no way back within the process lifetime.
    """

    def __init__(self):
        self._lock = Lock()
        self._available = {Feature.IMAGE: True, Feature.VIDEO: True}

    @property
    def image_gen_available(self) -> bool:
        return self.is_available(Feature.IMAGE)

    @property
    def video_gen_available(self) -> bool:
        return self.is_available(Feature.VIDEO)

    def is_available(self, feature: Feature) -> bool:
        with self._lock:
            return self._available[feature]

    def downgrade(self, feature: Feature) -> bool:
        """Disable a feature. Returns True only on the first transition."""
        with self._lock:
            changed = self._available[feature]
            self._available[feature] = False
            return changed


class TurnKind(str, Enum):
    CHAT = "chat"
    IMAGE = "image"
    VIDEO = "video"


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    POLLING = "polling"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Outcome of one turn: the committed model message or the classified error."""

    session_id: str
    kind: TurnKind
    state: TurnState
    message: Optional[Message] = None
    error: Optional["ClassifiedError"] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.state == TurnState.COMMITTED
