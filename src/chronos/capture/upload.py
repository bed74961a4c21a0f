"""Artifacts from files already on disk."""

from pathlib import Path
from typing import Optional

from ..errors import ValidationError
from ..models.capture import MediaArtifact, media_kind_for


def artifact_from_file(source_file_path: Path, content_type: Optional[str] = None) -> MediaArtifact:
    """Load a file into a MediaArtifact.

    Args:
        source_file_path: Path to an image, audio or video file
        content_type: Explicit content type; inferred from the extension if None

    Returns:
        MediaArtifact named after the source file

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file is empty or not image/audio/video
    """
    if not source_file_path.exists():
        raise FileNotFoundError(f"Source file not found: {source_file_path}")

    resolved_type = content_type or infer_content_type(source_file_path.suffix)
    if media_kind_for(resolved_type) is None:
        raise ValidationError(
            f"Unsupported media file: {source_file_path.name} "
            "(expected an image, audio or video file)"
        )

    data = source_file_path.read_bytes()
    if not data:
        raise ValidationError(f"Media file is empty: {source_file_path.name}")

    return MediaArtifact(name=source_file_path.name, content_type=resolved_type, data=data)


def infer_content_type(extension: str) -> str:
    """Infer content type from file extension.

    Args:
        extension: File extension (including dot)

    Returns:
        Content type string; application/octet-stream when unknown
    """
    ext_lower = extension.lower()

    if ext_lower in [".jpg", ".jpeg"]:
        return "image/jpeg"
    elif ext_lower in [".png", ".gif", ".webp", ".bmp"]:
        return f"image/{ext_lower[1:]}"
    elif ext_lower == ".mp3":
        return "audio/mpeg"
    elif ext_lower in [".wav", ".ogg", ".flac"]:
        return f"audio/{ext_lower[1:]}"
    elif ext_lower == ".m4a":
        return "audio/mp4"
    elif ext_lower in [".mp4", ".webm"]:
        # Recorded .webm defaults to video; pass content_type for audio-only webm
        return f"video/{ext_lower[1:]}"
    elif ext_lower == ".mov":
        return "video/quicktime"
    elif ext_lower == ".mkv":
        return "video/x-matroska"
    else:
        return "application/octet-stream"
