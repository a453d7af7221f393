"""Attachments read from the local filesystem.

Stands in for the device pickers of a mobile client: a file becomes plain
data of the shape ``{type, mimeType, base64}`` ready to be sent with a message.
"""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from nanobot_cli.services.exceptions import ValidationError

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


class Attachment(BaseModel):
    """File or image attached to an outgoing message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image", "file"]
    name: str
    mime_type: str
    base64: str
    uri: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Shape sent in the ``attachments`` argument of the run tool."""
        return {
            "type": self.type,
            "data": self.base64,
            "mimeType": self.mime_type,
        }


def load_attachment(path: Path, max_bytes: int = MAX_ATTACHMENT_BYTES) -> Attachment:
    """Read a file into an attachment.

    Args:
        path: File to attach
        max_bytes: Upper bound on the file size

    Returns:
        Attachment with base64 content and a guessed MIME type

    Raises:
        ValidationError: File missing, not a regular file or too large
    """
    if not path.is_file():
        raise ValidationError(f"Attachment not found: {path}")

    size = path.stat().st_size
    if size > max_bytes:
        raise ValidationError(
            f"Attachment too large: {path.name} ({size} bytes)",
            details={"max_bytes": max_bytes},
        )

    mime_type, _ = mimetypes.guess_type(path.name)
    mime_type = mime_type or "application/octet-stream"

    return Attachment(
        type="image" if mime_type.startswith("image/") else "file",
        name=path.name,
        mime_type=mime_type,
        base64=base64.b64encode(path.read_bytes()).decode("ascii"),
        uri=path.resolve().as_uri(),
    )
