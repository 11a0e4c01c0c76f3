"""Turning local files into request content parts."""

from __future__ import annotations

import base64
from pathlib import Path

from parley.llm.types import ContentPart, FilePart, ImagePart

ATTACH_PREFIX = "#file:"

IMAGE_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


class AttachmentError(Exception):
    """The file cannot be attached."""


def attach_file(path: str | Path) -> ContentPart:
    """
    Read *path* into a content part.

    PDFs become a :class:`FilePart`; supported images become an
    :class:`ImagePart`.  Both carry a base64 ``data:`` URL.
    """
    p = Path(path).expanduser()
    suffix = p.suffix.lower()

    if suffix == ".pdf":
        mime_type = "application/pdf"
    elif suffix in IMAGE_TYPES:
        mime_type = IMAGE_TYPES[suffix]
    else:
        raise AttachmentError(f"unsupported file extension: {suffix or '(none)'}")

    try:
        binary = p.read_bytes()
    except OSError as exc:
        raise AttachmentError(f"failed to read file: {exc}") from exc

    encoded = f"data:{mime_type};base64,{base64.b64encode(binary).decode('ascii')}"
    if mime_type == "application/pdf":
        return FilePart(file_data=encoded, filename=p.name)
    return ImagePart(url=encoded)
