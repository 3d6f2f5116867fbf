"""Test fixtures for RexAI."""

from tests.fixtures.mocks import (
    DEFAULT_LLM_RESPONSES,
    SAMPLE_DOCUMENT_TEXT,
    MockDocumentParser,
    MockLLMService,
    MockRxNormClient,
)

__all__ = [
    "DEFAULT_LLM_RESPONSES",
    "SAMPLE_DOCUMENT_TEXT",
    "MockDocumentParser",
    "MockLLMService",
    "MockRxNormClient",
]
