"""Obtain the document's text: reuse stored text or parse the uploaded file."""

import asyncio
import logging
from dataclasses import dataclass

from rexai.config import settings
from rexai.services.document_parser import DocumentParser
from rexai.services.document_store import DocumentRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquiredText:
    text: str
    freshly_parsed: bool


class TextAcquisition:
    """The only fatal stage: without text there is nothing to analyse."""

    def __init__(
        self,
        parser: DocumentParser,
        min_existing_length: int | None = None,
        timeout: float | None = None,
    ):
        self.parser = parser
        self.min_existing_length = (
            min_existing_length if min_existing_length is not None else settings.analysis_min_existing_text_length
        )
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def acquire(self, document: DocumentRecord) -> AcquiredText:
        """
        Return reusable stored text, or parse the file once.

        Raises:
            TextAcquisitionError: Parser unreachable, failed, timed out or returned no text
        """
        existing = document.existing_text or ""
        if len(existing) > self.min_existing_length:
            logger.info("Reusing %d chars of stored text for document %s", len(existing), document.id)
            return AcquiredText(text=existing, freshly_parsed=False)

        logger.info("Parsing document %s (%s)", document.id, document.file_name)
        try:
            text = await asyncio.wait_for(
                self.parser.parse_document(document.file_url, document.file_name, document.file_type),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TextAcquisitionError(f"Document parsing timed out after {self.timeout}s") from e
        except Exception as e:
            raise TextAcquisitionError(f"Document parsing failed: {e}") from e

        if not text or not text.strip():
            raise TextAcquisitionError("Document parsing returned no text")

        logger.info("Parsed %d chars from document %s", len(text), document.id)
        return AcquiredText(text=text, freshly_parsed=True)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class AnalysisPipelineError(Exception):
    """Fatal pipeline failure: no result can be produced."""

    pass


class DocumentNotFoundError(AnalysisPipelineError):
    """The requested document does not exist."""

    pass


class TextAcquisitionError(AnalysisPipelineError):
    """No usable text could be obtained for the document."""

    pass
