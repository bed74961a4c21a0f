"""Models for media capture: chunks, artifacts and recorder states."""

import io
from dataclasses import dataclass
from typing import BinaryIO, Literal, Optional, Union

CaptureMode = Literal["audio", "video"]

RECORDING_EXTENSION = "webm"

DEFAULT_CONTENT_TYPES: dict[str, str] = {
    "audio": "audio/webm",
    "video": "video/webm",
}


def media_kind_for(content_type: Optional[str]) -> Optional[str]:
    """Map a content type to a capsule media kind by its prefix.

    Returns 'image', 'audio' or 'video', or None when the prefix is not one
    of those (or no content type is given).
    """
    if not content_type:
        return None
    prefix = content_type.split("/", 1)[0].strip().lower()
    if prefix in ("image", "audio", "video"):
        return prefix
    return None


@dataclass(frozen=True)
class DeviceConstraints:
    """Which tracks to request from the capture device."""

    audio: bool = True
    video: bool = False

    @classmethod
    def for_mode(cls, mode: CaptureMode) -> "DeviceConstraints":
        if mode == "video":
            return cls(audio=True, video=True)
        return cls(audio=True, video=False)


@dataclass(frozen=True)
class MediaChunk:
    """One fragment of recorded data, in recorder order."""

    data: bytes
    content_type: str = ""


@dataclass(frozen=True)
class MediaArtifact:
    """A named, typed binary payload (captured or uploaded)."""

    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def media_kind(self) -> Optional[str]:
        return media_kind_for(self.content_type)

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)


# Recorder states. Exactly one is current at any time.


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class RequestingDevice:
    mode: CaptureMode


@dataclass(frozen=True)
class Armed:
    mode: CaptureMode


@dataclass(frozen=True)
class Recording:
    mode: CaptureMode
    started_at: float


@dataclass(frozen=True)
class Stopped:
    artifact: MediaArtifact


@dataclass(frozen=True)
class Cancelled:
    pass


@dataclass(frozen=True)
class Error:
    reason: str


CaptureState = Union[Idle, RequestingDevice, Armed, Recording, Stopped, Cancelled, Error]

ACTIVE_STATES = (RequestingDevice, Armed, Recording)
