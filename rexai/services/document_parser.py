"""
LlamaParse (LlamaIndex Cloud) client: uploaded document -> markdown text.

Flow: upload the file, poll the parse job until it finishes, fetch the
markdown result.
"""

import asyncio
import logging
import mimetypes
import time
from pathlib import Path

import httpx

from rexai.config import settings

logger = logging.getLogger(__name__)

JOB_SUCCESS = "SUCCESS"
JOB_FAILED = {"ERROR", "CANCELED"}


def _resolve_mime_type(declared: str | None, file_name: str) -> str:
    if declared and "/" in declared:
        return declared
    guessed = mimetypes.guess_type(file_name)[0]
    if guessed is None and declared:
        extension = declared.strip().lstrip(".").lower()
        guessed = mimetypes.guess_type(f"upload.{extension}")[0]
    return guessed or "application/pdf"


class DocumentParseError(Exception):
    """The document could not be downloaded or parsed."""

    pass


class DocumentParser:
    """Async LlamaParse client. Pass an httpx.AsyncClient to mock transport in tests."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        poll_interval: float | None = None,
        max_wait: float | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llama_cloud_api_key
        self.base_url = (base_url or settings.llama_parse_base_url).rstrip("/")
        self.poll_interval = poll_interval if poll_interval is not None else settings.llama_parse_poll_interval
        self.max_wait = max_wait if max_wait is not None else settings.llama_parse_max_wait
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    async def parse(self, file_bytes: bytes, mime_type: str | None, file_name: str) -> str:
        """
        Parse a document into markdown.

        Args:
            file_bytes: Raw file content
            mime_type: MIME type, or a bare extension such as "pdf" (guessed from file_name when missing)
            file_name: Original filename, used by the parser for format detection

        Returns:
            Markdown text (may be empty if the parser found nothing)

        Raises:
            DocumentParseError: Missing API key, HTTP failure, failed or timed-out job
        """
        if not self.api_key:
            raise DocumentParseError("LLAMA_CLOUD_API_KEY is not configured")

        mime_type = _resolve_mime_type(mime_type, file_name)
        client = self._get_client()

        try:
            upload = await client.post(
                f"{self.base_url}/upload",
                headers=self._headers,
                files={"file": (file_name, file_bytes, mime_type)},
            )
            upload.raise_for_status()
            job_id = upload.json()["id"]
            logger.info("LlamaParse job %s started for %s (%d bytes)", job_id, file_name, len(file_bytes))

            await self._wait_for_job(client, job_id)

            result = await client.get(f"{self.base_url}/job/{job_id}/result/markdown", headers=self._headers)
            result.raise_for_status()
            markdown = result.json().get("markdown") or ""
        except httpx.HTTPError as e:
            raise DocumentParseError(f"LlamaParse request failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise DocumentParseError(f"Unexpected LlamaParse response: {e}") from e

        logger.info("LlamaParse extracted %d characters from %s", len(markdown), file_name)
        return markdown

    async def _wait_for_job(self, client: httpx.AsyncClient, job_id: str) -> None:
        deadline = time.monotonic() + self.max_wait
        while True:
            response = await client.get(f"{self.base_url}/job/{job_id}", headers=self._headers)
            response.raise_for_status()
            status = str(response.json().get("status", "")).upper()

            if status == JOB_SUCCESS:
                return
            if status in JOB_FAILED:
                raise DocumentParseError(f"LlamaParse job {job_id} ended with status {status}")
            if time.monotonic() >= deadline:
                raise DocumentParseError(f"LlamaParse job {job_id} did not finish within {self.max_wait}s")

            await asyncio.sleep(self.poll_interval)

    async def parse_document(self, file_url: str, file_name: str, file_type: str | None = None) -> str:
        """Download (or read) the stored file, then parse it."""
        file_bytes = await self._load_file(file_url)
        return await self.parse(file_bytes, file_type, file_name)

    async def _load_file(self, file_url: str) -> bytes:
        if file_url.startswith(("http://", "https://")):
            try:
                response = await self._get_client().get(file_url, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise DocumentParseError(f"Could not download {file_url}: {e}") from e
            return response.content

        path = Path(file_url.removeprefix("file://"))
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise DocumentParseError(f"Could not read {path}: {e}") from e
