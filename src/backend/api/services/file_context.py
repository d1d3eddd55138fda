"""
Chat attachment processing.

File parts of a user message are validated against the supported and
allowed media types, fetched (data URLs are decoded in place, remote URLs only from public hosts) and rendered
as plain text that is appended to the message sent to the model.
"""

from __future__ import annotations

import base64
import binascii
import json

from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

import httpx

from core.constants import CODE_FILE_EXTENSIONS, MAX_ATTACHMENT_SIZE_BYTES, SUPPORTED_ATTACHMENT_TYPES
from models.schemas.chat import FileMessagePart
from utils.activity_logger import AgentOperationCategory, AgentOperationType, AgentType, PerformanceTracker
from utils.client_factory import create_fetch_client
from utils.logger import logger
from utils.url_fetch import FetchError, ResponseTooLargeError, fetch_public_url

FILE_TOO_LARGE_MESSAGE = "File size exceeds 10MB limit"


class AttachmentError(Exception):
    """An attachment could not be read."""


@dataclass
class AttachmentValidation:
    valid: bool
    error: str | None = None


def _extension(name: str) -> str:
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def is_allowed_type(media_type: str, name: str, allowed_types: list[str]) -> bool:
    """Match a file against allowed entries.

    Entries may be full media types (``image/png``), prefixes (``text/`` or
    ``image/*``), the ``images`` category or bare extensions/subtypes
    (``pdf``, ``py``). An empty list allows every supported type.
    """
    if not allowed_types:
        return True
    media_type = media_type.lower()
    subtype = media_type.split("/", 1)[-1]
    extension = _extension(name)
    for entry in (a.strip().lower() for a in allowed_types):
        if not entry:
            continue
        if "/" in entry:
            prefix = entry[:-1] if entry.endswith("*") else entry
            if media_type == entry or (prefix.endswith("/") and media_type.startswith(prefix)):
                return True
        elif entry in ("image", "images"):
            if media_type.startswith("image/"):
                return True
        elif entry.lstrip(".") in (extension, subtype):
            return True
    return False


def validate_file_attachment(part: FileMessagePart, allowed_types: list[str] | None = None) -> AttachmentValidation:
    if not part.name or not part.url or not part.media_type:
        return AttachmentValidation(False, "Missing required file properties")
    if not any(part.media_type.startswith(t) for t in SUPPORTED_ATTACHMENT_TYPES):
        return AttachmentValidation(False, f"Unsupported file type: {part.media_type}")
    if not is_allowed_type(part.media_type, part.name, allowed_types or []):
        return AttachmentValidation(False, f"File type not allowed for this model: {part.media_type}")
    return AttachmentValidation(True)


def _decode_data_url(url: str) -> bytes:
    header, sep, data = url.partition(",")
    if not sep:
        raise AttachmentError("Malformed data URL")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AttachmentError(f"Invalid base64 payload: {e}") from e
    return unquote_to_bytes(data)


async def _fetch_bytes(url: str, client: httpx.AsyncClient) -> bytes:
    if url.startswith("data:"):
        return _decode_data_url(url)
    try:
        fetched = await fetch_public_url(client, url, MAX_ATTACHMENT_SIZE_BYTES)
    except ResponseTooLargeError as e:
        raise AttachmentError(FILE_TOO_LARGE_MESSAGE) from e
    except FetchError as e:
        raise AttachmentError(f"Failed to fetch file: {e}") from e
    return fetched.content


def render_file_content(name: str, media_type: str, raw: bytes) -> str:
    """Text the model sees for one attachment."""
    if media_type.startswith("image/"):
        size_kb = round(len(raw) / 1024)
        return (
            f"Image file: {name}\nType: {media_type}\nSize: {size_kb}KB\n"
            "[Image content cannot be extracted as text]"
        )
    if media_type == "application/pdf":
        return f"PDF file: {name}\n[PDF text extraction is not supported]"

    text = raw.decode("utf-8", errors="replace")
    if media_type == "application/json":
        try:
            return json.dumps(json.loads(text), indent=2)
        except ValueError:
            return text
    extension = _extension(name)
    if extension in CODE_FILE_EXTENSIONS:
        return f"Code file ({extension}): {name}\n```{extension}\n{text}\n```"
    return text


async def extract_file_content(
    part: FileMessagePart,
    client: httpx.AsyncClient,
    user_id: str | None = None,
) -> str:
    tracker = PerformanceTracker(
        AgentType.CHAT_MODEL_AGENT,
        AgentOperationType.TOOL_INVOCATION,
        AgentOperationCategory.TOOL_USE,
        user_id=user_id,
    )
    metadata = {"file_name": part.name, "media_type": part.media_type}
    try:
        raw = await _fetch_bytes(part.url, client)
        if len(raw) > MAX_ATTACHMENT_SIZE_BYTES:
            raise AttachmentError(FILE_TOO_LARGE_MESSAGE)
        content = render_file_content(part.name, part.media_type, raw)
    except (AttachmentError, httpx.HTTPError) as e:
        await tracker.end(success=False, error=e, operation_metadata=metadata)
        raise AttachmentError(f"Failed to process file {part.name}: {e}") from e

    await tracker.end(success=True, operation_metadata={**metadata, "file_size": len(raw)})
    return content


async def build_file_context(
    parts: list[FileMessagePart],
    allowed_types: list[str] | None = None,
    user_id: str | None = None,
) -> str:
    """``Attached files:`` block for the valid attachments, or an empty string.

    Invalid or unreadable attachments are logged and left out; they never
    fail the turn.
    """
    if not parts:
        return ""

    sections: list[str] = []
    async with create_fetch_client() as client:
        for part in parts:
            validation = validate_file_attachment(part, allowed_types)
            if not validation.valid:
                logger.warning(f"Skipping attachment {part.name}: {validation.error}", file_name=part.name)
                continue
            try:
                content = await extract_file_content(part, client, user_id)
            except AttachmentError as e:
                logger.warning(str(e), file_name=part.name)
                continue
            sections.append(f"File: {part.name}\nContent:\n{content}")

    if not sections:
        return ""
    return "\n\nAttached files:\n" + "\n\n".join(sections)
