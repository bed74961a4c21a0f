"""Data models for Chronos Vault."""

from .capsule import Capsule, CapsuleForm, CapsuleView, MediaType
from .capture import (
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
    media_kind_for,
)
from .ledger import LedgerEvent, LedgerEventType

__all__ = [
    # Capsules
    "Capsule",
    "CapsuleForm",
    "CapsuleView",
    "MediaType",
    # Capture
    "CaptureMode",
    "CaptureState",
    "DeviceConstraints",
    "MediaArtifact",
    "MediaChunk",
    "media_kind_for",
    "Idle",
    "RequestingDevice",
    "Armed",
    "Recording",
    "Stopped",
    "Cancelled",
    "Error",
    # Ledger
    "LedgerEvent",
    "LedgerEventType",
]
