"""
Unit tests for CLI commands.
"""

import json
import sys
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from rexai.cli import add_document, analyze, main
from rexai.models import Document
from rexai.services.analysis_pipeline import AnalysisPipeline
from tests.factories import TEST_TODAY, create_document


# =============================================================================
# add_document Tests
# =============================================================================


class TestAddDocument:
    """Tests for registering local files."""

    def test_registers_file(self, db: Session, tmp_path):
        path = tmp_path / "rx.pdf"
        path.write_bytes(b"%PDF-1.4")
        user_id = uuid.uuid4()

        with patch("rexai.cli.SessionLocal", return_value=db), patch("builtins.print") as mock_print:
            add_document(str(path), str(user_id), "application/pdf")

        document = db.query(Document).filter(Document.file_name == "rx.pdf").one()
        assert document.user_id == user_id
        assert document.file_url == str(path.resolve())
        mock_print.assert_called_with(f"Document registered: {document.id}")

    def test_missing_file(self, tmp_path):
        with patch("builtins.print") as mock_print, pytest.raises(SystemExit) as exc_info:
            add_document(str(tmp_path / "missing.pdf"), str(uuid.uuid4()))

        assert exc_info.value.code == 1
        assert "does not exist" in str(mock_print.call_args)

    def test_invalid_user_id(self, tmp_path):
        path = tmp_path / "rx.pdf"
        path.write_bytes(b"%PDF-1.4")

        with patch("builtins.print") as mock_print, pytest.raises(SystemExit) as exc_info:
            add_document(str(path), "not-a-uuid")

        assert exc_info.value.code == 1
        assert "not a valid user id" in str(mock_print.call_args)


# =============================================================================
# analyze Tests
# =============================================================================


class TestAnalyze:
    """Tests for running the pipeline from the command line."""

    @pytest.fixture
    def mock_pipeline_class(self, mock_llm, mock_rxnorm, mock_parser):
        def factory(db):
            return AnalysisPipeline(
                db, llm_service=mock_llm, rxnorm_client=mock_rxnorm, document_parser=mock_parser, today=TEST_TODAY
            )

        return factory

    def test_prints_analysis_json(self, db: Session, mock_pipeline_class):
        document = create_document(db)

        with patch("rexai.cli.SessionLocal", return_value=db), patch(
            "rexai.cli.AnalysisPipeline", side_effect=mock_pipeline_class
        ), patch("builtins.print") as mock_print:
            analyze(str(document.id))

        output = json.loads(mock_print.call_args[0][0])
        assert output["document_type"] == "prescription"
        assert output["cached_at"] is None

    def test_missing_document_exits(self, db: Session, mock_pipeline_class):
        with patch("rexai.cli.SessionLocal", return_value=db), patch(
            "rexai.cli.AnalysisPipeline", side_effect=mock_pipeline_class
        ), patch("builtins.print") as mock_print, pytest.raises(SystemExit) as exc_info:
            analyze(str(uuid.uuid4()))

        assert exc_info.value.code == 1
        assert "not found" in str(mock_print.call_args)

    def test_invalid_document_id(self):
        with patch("builtins.print") as mock_print, pytest.raises(SystemExit) as exc_info:
            analyze("123")

        assert exc_info.value.code == 1
        assert "not a valid document id" in str(mock_print.call_args)


# =============================================================================
# main Tests
# =============================================================================


class TestMain:
    """Tests for argument parsing and dispatch."""

    def test_no_command_prints_help(self):
        with patch.object(sys, "argv", ["rexai"]), patch("argparse.ArgumentParser.print_help") as mock_help, \
                pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        mock_help.assert_called_once()

    def test_init_db_command(self):
        with patch.object(sys, "argv", ["rexai", "init-db"]), patch("rexai.cli.init_db") as mock_init:
            main()

        mock_init.assert_called_once()

    def test_analyze_command(self):
        with patch.object(sys, "argv", ["rexai", "-v", "analyze", "abc", "--force-refresh"]), patch(
            "rexai.cli.analyze"
        ) as mock_analyze:
            main()

        mock_analyze.assert_called_once_with("abc", True)

    def test_add_document_command(self):
        argv = ["rexai", "add-document", "rx.pdf", "--user-id", "u-1", "--file-type", "application/pdf"]
        with patch.object(sys, "argv", argv), patch("rexai.cli.add_document") as mock_add:
            main()

        mock_add.assert_called_once_with("rx.pdf", "u-1", "application/pdf")
