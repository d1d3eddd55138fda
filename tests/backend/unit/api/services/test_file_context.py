"""Tests for chat attachment processing."""

from __future__ import annotations

import base64
import ipaddress

from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from api.services.file_context import (
    AttachmentError,
    _decode_data_url,
    build_file_context,
    extract_file_content,
    is_allowed_type,
    render_file_content,
    validate_file_attachment,
)
from models.schemas.chat import FileMessagePart


def _file(name: str, media_type: str, url: str) -> FileMessagePart:
    return FileMessagePart(type="file", name=name, mediaType=media_type, url=url)


def _data_url(media_type: str, payload: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(payload).decode()}"


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestIsAllowedType:
    @pytest.mark.parametrize(
        ("media_type", "name", "allowed", "expected"),
        [
            ("image/png", "a.png", [], True),
            ("image/png", "a.png", ["image/png"], True),
            ("image/webp", "a.webp", ["image/*"], True),
            ("text/markdown", "a.md", ["text/"], True),
            ("image/gif", "a.gif", ["images"], True),
            ("application/pdf", "a.pdf", ["pdf"], True),
            ("text/x-python", "main.py", [".py"], True),
            ("application/pdf", "a.pdf", ["image/*", "txt"], False),
        ],
    )
    def test_matching(self, media_type: str, name: str, allowed: list[str], expected: bool) -> None:
        assert is_allowed_type(media_type, name, allowed) is expected


class TestValidateFileAttachment:
    def test_missing_url(self) -> None:
        result = validate_file_attachment(_file("a.txt", "text/plain", ""))

        assert result.valid is False
        assert result.error == "Missing required file properties"

    def test_unsupported_type(self) -> None:
        result = validate_file_attachment(_file("a.zip", "application/zip", "data:,x"))

        assert result.error == "Unsupported file type: application/zip"

    def test_not_allowed_for_model(self) -> None:
        result = validate_file_attachment(_file("a.pdf", "application/pdf", "data:,x"), ["image/*"])

        assert result.error == "File type not allowed for this model: application/pdf"

    def test_valid(self) -> None:
        assert validate_file_attachment(_file("a.txt", "text/plain", "data:,x")).valid is True


class TestDecodeDataUrl:
    def test_base64(self) -> None:
        assert _decode_data_url(_data_url("text/plain", b"hello")) == b"hello"

    def test_percent_encoded(self) -> None:
        assert _decode_data_url("data:text/plain,hello%20world") == b"hello world"

    def test_malformed(self) -> None:
        with pytest.raises(AttachmentError, match="Malformed data URL"):
            _decode_data_url("data:text/plain;base64")

    def test_invalid_base64(self) -> None:
        with pytest.raises(AttachmentError, match="Invalid base64"):
            _decode_data_url("data:text/plain;base64,@@@")


class TestRenderFileContent:
    def test_image_summary(self) -> None:
        content = render_file_content("cat.png", "image/png", b"\x00" * 2048)

        assert content == "Image file: cat.png\nType: image/png\nSize: 2KB\n[Image content cannot be extracted as text]"

    def test_pdf_placeholder(self) -> None:
        assert render_file_content("a.pdf", "application/pdf", b"%PDF") == (
            "PDF file: a.pdf\n[PDF text extraction is not supported]"
        )

    def test_json_pretty_printed(self) -> None:
        assert render_file_content("a.json", "application/json", b'{"a":1}') == '{\n  "a": 1\n}'

    def test_invalid_json_kept(self) -> None:
        assert render_file_content("a.json", "application/json", b"{oops") == "{oops"

    def test_code_fenced(self) -> None:
        assert render_file_content("main.py", "text/x-python", b"print(1)") == (
            "Code file (py): main.py\n```py\nprint(1)\n```"
        )

    def test_plain_text(self) -> None:
        assert render_file_content("notes.txt", "text/plain", b"hi") == "hi"


class TestExtractFileContent:
    @pytest.fixture(autouse=True)
    def public_dns(self) -> Any:
        addresses = [ipaddress.ip_address("93.184.216.34")]
        with patch("utils.url_fetch.resolve_addresses", new=AsyncMock(return_value=addresses)) as resolve:
            yield resolve

    @pytest.mark.asyncio
    async def test_fetches_remote_url(self) -> None:
        client = mock_client(lambda request: httpx.Response(200, content=b"remote text"))

        content = await extract_file_content(_file("a.txt", "text/plain", "https://files.example.com/a.txt"), client)

        assert content == "remote text"

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = mock_client(lambda request: httpx.Response(404))

        with pytest.raises(AttachmentError, match="Failed to process file a.txt: Failed to fetch file: 404"):
            await extract_file_content(_file("a.txt", "text/plain", "https://files.example.com/a.txt"), client)

    @pytest.mark.asyncio
    async def test_size_limit(self) -> None:
        async def oversized() -> AsyncIterator[bytes]:
            for _ in range(11):
                yield b"x" * (1024 * 1024)

        client = mock_client(lambda request: httpx.Response(200, content=oversized()))

        with pytest.raises(AttachmentError, match="File size exceeds 10MB limit"):
            await extract_file_content(_file("a.txt", "text/plain", "https://files.example.com/a.txt"), client)

    @pytest.mark.asyncio
    async def test_private_host_refused(self) -> None:
        requested: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request)
            return httpx.Response(200, content=b"secret")

        client = mock_client(handler)

        with pytest.raises(AttachmentError, match="Failed to fetch file: Host 127.0.0.1 is not a public address"):
            await extract_file_content(_file("a.txt", "text/plain", "http://127.0.0.1:9000/a.txt"), client)

        assert requested == []

    @pytest.mark.asyncio
    async def test_oversized_data_url(self) -> None:
        with pytest.raises(AttachmentError, match="File size exceeds 10MB limit"):
            await extract_file_content(
                _file("a.txt", "text/plain", "data:text/plain," + "x" * (10 * 1024 * 1024 + 1)), MagicMock()
            )


class TestBuildFileContext:
    @pytest.mark.asyncio
    async def test_no_parts(self) -> None:
        assert await build_file_context([]) == ""

    @pytest.mark.asyncio
    async def test_valid_and_invalid_parts(self) -> None:
        parts = [
            _file("notes.txt", "text/plain", _data_url("text/plain", b"remember the milk")),
            _file("a.zip", "application/zip", "data:,x"),
            _file("bad.txt", "text/plain", "data:text/plain;base64,@@@"),
        ]

        context = await build_file_context(parts)

        assert context == "\n\nAttached files:\nFile: notes.txt\nContent:\nremember the milk"

    @pytest.mark.asyncio
    async def test_all_skipped(self) -> None:
        parts = [_file("a.pdf", "application/pdf", "data:,x")]

        assert await build_file_context(parts, allowed_types=["image/*"]) == ""

    @pytest.mark.asyncio
    async def test_uses_fetch_client(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=b"page")

        addresses = [ipaddress.ip_address("93.184.216.34")]
        with (
            patch("api.services.file_context.create_fetch_client", return_value=mock_client(handler)),
            patch("utils.url_fetch.resolve_addresses", new=AsyncMock(return_value=addresses)),
        ):
            context = await build_file_context([_file("a.txt", "text/plain", "https://files.example.com/a.txt")])

        assert context.endswith("Content:\npage")
        assert requested == ["https://files.example.com/a.txt"]
