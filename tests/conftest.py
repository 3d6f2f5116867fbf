"""
Test configuration and fixtures for RexAI.

- Function-scoped database engine (in-memory SQLite unless TEST_DATABASE_URL is set)
- Session fixture bound to that engine
- Mock collaborators for text generation, RxNorm and document parsing
- TestClient with database and pipeline dependency overrides
"""

import os

# Settings are read at import time; point them at test defaults first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rexai.api.insights import get_analysis_pipeline
from rexai.database import Base, get_db
from rexai.main import app
from rexai.services.analysis_pipeline import AnalysisPipeline
from tests.factories import TEST_TODAY
from tests.fixtures.mocks import MockDocumentParser, MockLLMService, MockRxNormClient


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """TEST_DATABASE_URL (e.g. a disposable PostgreSQL database) or in-memory SQLite."""
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture
def test_engine():
    """
    Create a fresh engine and schema per test.

    In-memory SQLite uses a StaticPool so every session shares one connection.
    """
    database_url = get_test_database_url()
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    else:
        engine = create_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """Database session for one test. The pipeline commits, so isolation comes from the per-test schema."""
    TestingSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()

    yield session

    session.close()


# =============================================================================
# Collaborator Mocks
# =============================================================================


@pytest.fixture
def mock_llm() -> MockLLMService:
    return MockLLMService()


@pytest.fixture
def mock_rxnorm() -> MockRxNormClient:
    return MockRxNormClient()


@pytest.fixture
def mock_parser() -> MockDocumentParser:
    return MockDocumentParser()


@pytest.fixture
def pipeline(db, mock_llm, mock_rxnorm, mock_parser) -> AnalysisPipeline:
    """AnalysisPipeline wired to mocks, with a fixed 'today'."""
    return AnalysisPipeline(
        db,
        llm_service=mock_llm,
        rxnorm_client=mock_rxnorm,
        document_parser=mock_parser,
        today=TEST_TODAY,
    )


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def client(db: Session, pipeline: AnalysisPipeline) -> Generator[TestClient, None, None]:
    """
    TestClient with database and pipeline dependency overrides.

    The database session and the mock-backed pipeline are injected into the app.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    def override_get_analysis_pipeline():
        return pipeline

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_analysis_pipeline] = override_get_analysis_pipeline

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
