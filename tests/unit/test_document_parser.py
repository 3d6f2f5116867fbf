"""
Unit tests for DocumentParser (LlamaParse client) using httpx.MockTransport.
"""

import httpx
import pytest

from rexai.services.document_parser import DocumentParseError, DocumentParser, _resolve_mime_type

BASE_URL = "https://parse.test/api/parsing"


def make_parser(statuses: list[str], markdown: str | None = "# Prescription\nMetformin 500mg", requests=None):
    """Parser whose job reports the given statuses in turn, then the markdown result."""
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if path.endswith("/upload"):
            return httpx.Response(200, json={"id": "job-1", "status": "PENDING"})
        if path.endswith("/job/job-1"):
            status = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            return httpx.Response(200, json={"id": "job-1", "status": status})
        if path.endswith("/job/job-1/result/markdown"):
            return httpx.Response(200, json={} if markdown is None else {"markdown": markdown})
        if request.url.host == "files.test":
            return httpx.Response(200, content=b"%PDF-1.4 fake")
        return httpx.Response(404)

    return DocumentParser(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        api_key="test-key",
        base_url=BASE_URL,
        poll_interval=0,
        max_wait=5,
    )


class TestParse:
    """Tests for the upload/poll/result flow."""

    @pytest.mark.asyncio
    async def test_success_after_polling(self):
        requests = []
        parser = make_parser(["PENDING", "PENDING", "SUCCESS"], requests=requests)

        text = await parser.parse(b"%PDF", "application/pdf", "rx.pdf")

        assert text.startswith("# Prescription")
        polls = [r for r in requests if r.url.path.endswith("/job/job-1")]
        assert len(polls) == 3
        assert requests[0].headers["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_failed_job_raises(self):
        parser = make_parser(["ERROR"])

        with pytest.raises(DocumentParseError, match="ERROR"):
            await parser.parse(b"%PDF", "application/pdf", "rx.pdf")

    @pytest.mark.asyncio
    async def test_missing_markdown_returns_empty(self):
        parser = make_parser(["SUCCESS"], markdown=None)

        assert await parser.parse(b"%PDF", None, "rx.pdf") == ""

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        parser = make_parser(["PENDING"])
        parser.max_wait = 0

        with pytest.raises(DocumentParseError, match="did not finish"):
            await parser.parse(b"%PDF", "application/pdf", "rx.pdf")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        parser = DocumentParser(api_key="", base_url=BASE_URL)

        with pytest.raises(DocumentParseError, match="not configured"):
            await parser.parse(b"%PDF", "application/pdf", "rx.pdf")

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self):
        def handler(request):
            return httpx.Response(500, json={"detail": "boom"})

        parser = DocumentParser(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), api_key="k", base_url=BASE_URL
        )

        with pytest.raises(DocumentParseError, match="request failed"):
            await parser.parse(b"%PDF", "application/pdf", "rx.pdf")


class TestResolveMimeType:
    """Tests for the upload content type."""

    @pytest.mark.parametrize(
        "declared, file_name, expected",
        [
            ("application/pdf", "rx", "application/pdf"),
            ("pdf", "rx", "application/pdf"),
            (".PNG", "scan", "image/png"),
            ("jpg", "scan.png", "image/png"),
            (None, "scan.jpeg", "image/jpeg"),
            ("unknown", "scan", "application/pdf"),
        ],
    )
    def test_resolution(self, declared, file_name, expected):
        assert _resolve_mime_type(declared, file_name) == expected

    @pytest.mark.asyncio
    async def test_bare_extension_uploaded_as_mime_type(self):
        requests = []
        parser = make_parser(["SUCCESS"], requests=requests)

        await parser.parse(b"\x89PNG", "png", "scan")

        upload = requests[0]
        assert upload.url.path.endswith("/upload")
        assert b"Content-Type: image/png" in upload.content


class TestParseDocument:
    """Tests for loading the stored file before parsing."""

    @pytest.mark.asyncio
    async def test_downloads_remote_file(self):
        requests = []
        parser = make_parser(["SUCCESS"], requests=requests)

        text = await parser.parse_document("https://files.test/rx.pdf", "rx.pdf", "application/pdf")

        assert "Metformin" in text
        assert requests[0].url.host == "files.test"

    @pytest.mark.asyncio
    async def test_reads_local_file(self, tmp_path):
        path = tmp_path / "rx.pdf"
        path.write_bytes(b"%PDF-1.4 local")
        parser = make_parser(["SUCCESS"])

        text = await parser.parse_document(f"file://{path}", "rx.pdf")

        assert "Metformin" in text

    @pytest.mark.asyncio
    async def test_missing_local_file(self, tmp_path):
        parser = make_parser(["SUCCESS"])

        with pytest.raises(DocumentParseError, match="Could not read"):
            await parser.parse_document(str(tmp_path / "missing.pdf"), "missing.pdf")
