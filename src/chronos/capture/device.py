"""Device capture capability.

The capture controller never talks to hardware directly. It is handed a
DeviceCapture that can acquire a stream of audio (and optionally video)
tracks and open a recorder on it. Platform backends implement these
interfaces; ReplayDeviceCapture replays scripted chunks for tests and
offline use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from ..errors import DeviceError
from ..models.capture import DeviceConstraints, MediaChunk

ChunkCallback = Callable[[MediaChunk], None]


class Recorder(ABC):
    """Records a live stream into ordered chunks."""

    @abstractmethod
    def start(self, on_chunk: ChunkCallback) -> None:
        """Begin recording; chunks are delivered through on_chunk.

        Raises:
            DeviceError: If the recorder cannot start
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop recording.

        Every buffered chunk must have been delivered through on_chunk
        before this returns.
        """


class DeviceStream(ABC):
    """A live stream holding one or more device tracks."""

    @property
    @abstractmethod
    def tracks(self) -> list[str]:
        """Kinds of the tracks in this stream ('audio', 'video')."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while any track is still held."""

    @abstractmethod
    def open_recorder(self) -> Recorder:
        """Create a recorder bound to this stream."""

    @abstractmethod
    def stop(self) -> None:
        """Release every track. Safe to call more than once."""


class DeviceCapture(ABC):
    """Platform capability for acquiring capture devices."""

    @abstractmethod
    def acquire(self, constraints: DeviceConstraints) -> DeviceStream:
        """Acquire a stream satisfying the constraints.

        Raises:
            PermissionError: If access is denied or no device is present
        """


def _default_chunks(constraints: DeviceConstraints) -> list[MediaChunk]:
    content_type = "video/webm;codecs=vp8,opus" if constraints.video else "audio/webm;codecs=opus"
    return [
        MediaChunk(data=b"\x1a\x45\xdf\xa3", content_type=content_type),
        MediaChunk(data=b"replayed-media-payload", content_type=content_type),
    ]


class ReplayRecorder(Recorder):
    """Recorder that replays a fixed chunk script on stop."""

    def __init__(self, stream: "ReplayStream", script: Sequence[MediaChunk], fail_on_start: bool = False):
        self._stream = stream
        self._script = list(script)
        self._fail_on_start = fail_on_start
        self._on_chunk: Optional[ChunkCallback] = None
        self.recording = False

    def start(self, on_chunk: ChunkCallback) -> None:
        if self._fail_on_start:
            raise DeviceError("Recorder refused to start")
        if not self._stream.active:
            raise DeviceError("Cannot record an inactive stream")
        self._on_chunk = on_chunk
        self.recording = True

    def emit(self, chunk: MediaChunk) -> None:
        """Push a chunk while recording (used to simulate periodic data)."""
        if self.recording and self._on_chunk is not None:
            self._on_chunk(chunk)

    def stop(self) -> None:
        if not self.recording:
            return
        for chunk in self._script:
            self.emit(chunk)
        self.recording = False
        self._on_chunk = None


class ReplayStream(DeviceStream):
    def __init__(self, constraints: DeviceConstraints, script: Sequence[MediaChunk], fail_recorder: bool = False):
        kinds = []
        if constraints.audio:
            kinds.append("audio")
        if constraints.video:
            kinds.append("video")
        self._tracks = kinds
        self._live = set(kinds)
        self._script = script
        self._fail_recorder = fail_recorder
        self.recorders: list[ReplayRecorder] = []

    @property
    def tracks(self) -> list[str]:
        return list(self._tracks)

    @property
    def live_tracks(self) -> list[str]:
        return [kind for kind in self._tracks if kind in self._live]

    @property
    def active(self) -> bool:
        return bool(self._live)

    def open_recorder(self) -> ReplayRecorder:
        recorder = ReplayRecorder(self, self._script, fail_on_start=self._fail_recorder)
        self.recorders.append(recorder)
        return recorder

    def stop(self) -> None:
        self._live.clear()


class ReplayDeviceCapture(DeviceCapture):
    """Scripted capture backend.

    Every stream it hands out is remembered, so callers can check that no
    track is left running.
    """

    def __init__(
        self,
        chunks: Optional[Sequence[MediaChunk]] = None,
        deny: bool = False,
        fail_recorder: bool = False,
    ):
        self.chunks = chunks
        self.deny = deny
        self.fail_recorder = fail_recorder
        self.streams: list[ReplayStream] = []

    def acquire(self, constraints: DeviceConstraints) -> ReplayStream:
        if self.deny:
            raise PermissionError("Permission denied by user")
        script = self.chunks if self.chunks is not None else _default_chunks(constraints)
        stream = ReplayStream(constraints, script, fail_recorder=self.fail_recorder)
        self.streams.append(stream)
        return stream

    @property
    def active_tracks(self) -> int:
        return sum(len(stream.live_tracks) for stream in self.streams)
