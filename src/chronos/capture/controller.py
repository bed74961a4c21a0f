"""Recording state machine for live audio/video capture."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..errors import CaptureStateError, DeviceError
from ..models.capture import (
    ACTIVE_STATES,
    DEFAULT_CONTENT_TYPES,
    RECORDING_EXTENSION,
    Armed,
    Cancelled,
    CaptureMode,
    CaptureState,
    DeviceConstraints,
    Error,
    Idle,
    MediaArtifact,
    MediaChunk,
    Recording,
    RequestingDevice,
    Stopped,
)
from .device import DeviceCapture, DeviceStream, Recorder

logger = logging.getLogger(__name__)

DEVICE_UNAVAILABLE = "device unavailable"


def format_elapsed(seconds: int) -> str:
    """Render an elapsed recording time as m:ss."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


class MediaCaptureController:
    """Drives one capture session at a time.

    States: Idle -> RequestingDevice -> Armed (video) -> Recording -> Stopped,
    with Cancelled and Error reachable from any active state. Every path out
    of Armed or Recording releases the device stream and zeroes the elapsed
    counter.

    The elapsed counter is derived from the injected monotonic clock and the
    instant recording started, so there is no background timer to tear down.
    """

    def __init__(self, device: DeviceCapture, clock: Callable[[], float] = time.monotonic):
        self._device = device
        self._clock = clock
        self._state: CaptureState = Idle()
        self._stream: Optional[DeviceStream] = None
        self._recorder: Optional[Recorder] = None
        self._chunks: list[MediaChunk] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def mode(self) -> Optional[CaptureMode]:
        return getattr(self._state, "mode", None)

    @property
    def is_recording(self) -> bool:
        return isinstance(self._state, Recording)

    @property
    def artifact(self) -> Optional[MediaArtifact]:
        if isinstance(self._state, Stopped):
            return self._state.artifact
        return None

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since recording started; 0 when not recording."""
        if not isinstance(self._state, Recording):
            return 0
        return max(0, int(self._clock() - self._state.started_at))

    def select_mode(self, mode: CaptureMode) -> CaptureState:
        """Start a capture session in audio or video mode.

        Any active session is cancelled first. Audio starts recording as soon
        as the device is acquired; video waits in Armed for start_recording().

        Raises:
            DeviceError: If the device cannot be acquired or the recorder fails
        """
        if mode not in DEFAULT_CONTENT_TYPES:
            raise ValueError(f"Unsupported capture mode: {mode}")

        if isinstance(self._state, ACTIVE_STATES):
            self.cancel()

        self._state = RequestingDevice(mode)
        try:
            stream = self._device.acquire(DeviceConstraints.for_mode(mode))
        except (OSError, DeviceError) as e:
            logger.warning(f"Could not acquire {mode} device: {e}")
            self._state = Error(DEVICE_UNAVAILABLE)
            raise DeviceError(DEVICE_UNAVAILABLE) from e
        except Exception:
            self._state = Error(DEVICE_UNAVAILABLE)
            raise

        self._stream = stream
        if mode == "video":
            self._state = Armed(mode)
        else:
            self._begin_recording(mode)
        return self._state

    def start_recording(self) -> CaptureState:
        """Begin recording an armed video session."""
        state = self._state
        if not isinstance(state, Armed):
            raise CaptureStateError(f"Cannot start recording from {type(state).__name__}")
        self._begin_recording(state.mode)
        return self._state

    def stop(self) -> MediaArtifact:
        """Finish recording and return the assembled artifact.

        The stream is released whatever the outcome. An empty recording
        leaves the controller in Error and produces no artifact.
        """
        state = self._state
        if not isinstance(state, Recording):
            raise CaptureStateError(f"Cannot stop from {type(state).__name__}")

        recorder, self._recorder = self._recorder, None
        try:
            if recorder is not None:
                recorder.stop()
        except (OSError, DeviceError) as e:
            self._chunks = []
            self._release_stream()
            self._state = Error("recorder failed to stop")
            raise DeviceError("recorder failed to stop") from e

        chunks, self._chunks = self._chunks, []
        self._release_stream()

        data = b"".join(chunk.data for chunk in chunks)
        if not data:
            self._state = Error("empty recording")
            raise DeviceError("Recording produced no data")

        content_type = chunks[0].content_type or DEFAULT_CONTENT_TYPES[state.mode]
        artifact = MediaArtifact(
            name=f"recording.{RECORDING_EXTENSION}",
            content_type=content_type,
            data=data,
        )
        self._state = Stopped(artifact)
        logger.info(f"Recorded {artifact.size} bytes of {content_type}")
        return artifact

    def cancel(self) -> None:
        """Abandon the current session, releasing the device immediately."""
        if isinstance(self._state, (Idle, Stopped, Cancelled)):
            return
        self._teardown()
        self._state = Cancelled()

    def reset(self) -> None:
        """Return to Idle from any state, dropping a stopped artifact."""
        self._teardown()
        self._state = Idle()

    def close(self) -> None:
        self.reset()

    def __enter__(self) -> "MediaCaptureController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _begin_recording(self, mode: CaptureMode) -> None:
        if self._stream is None:
            raise CaptureStateError("No device stream to record from")

        self._chunks = []
        try:
            recorder = self._stream.open_recorder()
            recorder.start(self._collect)
        except (OSError, DeviceError) as e:
            logger.warning(f"Recorder failed to start: {e}")
            self._release_stream()
            self._state = Error("recorder failed to start")
            raise DeviceError("recorder failed to start") from e
        except Exception:
            self._release_stream()
            self._state = Error("recorder failed to start")
            raise

        self._recorder = recorder
        self._state = Recording(mode=mode, started_at=self._clock())
        logger.info(f"Recording {mode}")

    def _collect(self, chunk: MediaChunk) -> None:
        if chunk.data:
            self._chunks.append(chunk)

    def _teardown(self) -> None:
        recorder, self._recorder = self._recorder, None
        try:
            if recorder is not None:
                recorder.stop()
        except (OSError, DeviceError) as e:
            logger.warning(f"Recorder did not stop cleanly: {e}")
        finally:
            self._chunks = []
            self._release_stream()

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
