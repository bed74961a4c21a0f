"""Media capture: device capability, recording state machine and uploads."""

from .controller import MediaCaptureController, format_elapsed
from .device import DeviceCapture, DeviceStream, Recorder, ReplayDeviceCapture
from .upload import artifact_from_file, infer_content_type

__all__ = [
    "DeviceCapture",
    "DeviceStream",
    "MediaCaptureController",
    "Recorder",
    "ReplayDeviceCapture",
    "artifact_from_file",
    "format_elapsed",
    "infer_content_type",
]
