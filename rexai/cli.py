"""CLI commands for RexAI."""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path

from sqlalchemy.orm import Session

from rexai.database import Base, SessionLocal, engine
from rexai.models import Document
from rexai.services.analysis_pipeline import AnalysisPipeline
from rexai.services.text_acquisition import AnalysisPipelineError


def init_db() -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
    print("Database tables created.")


def add_document(path: str, user_id: str, file_type: str | None = None) -> None:
    """Register a local file as a document so it can be analysed."""
    file_path = Path(path)
    if not file_path.is_file():
        print(f"Error: File '{path}' does not exist.")
        sys.exit(1)

    try:
        owner = uuid.UUID(user_id)
    except ValueError:
        print(f"Error: '{user_id}' is not a valid user id.")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        document = Document(
            user_id=owner,
            file_url=str(file_path.resolve()),
            file_name=file_path.name,
            file_type=file_type,
        )
        db.add(document)
        db.commit()
        print(f"Document registered: {document.id}")
    finally:
        db.close()


async def _analyze(db: Session, document_id: uuid.UUID, force_refresh: bool):
    pipeline = AnalysisPipeline(db)
    try:
        return await pipeline.run_full_analysis_pipeline(document_id, force_refresh=force_refresh)
    finally:
        await pipeline.aclose()


def analyze(document_id: str, force_refresh: bool = False) -> None:
    """Run the full analysis pipeline and print the result as JSON."""
    try:
        doc_id = uuid.UUID(document_id)
    except ValueError:
        print(f"Error: '{document_id}' is not a valid document id.")
        sys.exit(1)

    db: Session = SessionLocal()
    try:
        result = asyncio.run(_analyze(db, doc_id, force_refresh))
    except AnalysisPipelineError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(json.dumps(result.model_dump(mode="json"), indent=2))


def main():
    parser = argparse.ArgumentParser(description="RexAI CLI")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log pipeline progress")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")

    add_parser = subparsers.add_parser("add-document", help="Register a local file as a document")
    add_parser.add_argument("path", help="Path to the document file")
    add_parser.add_argument("--user-id", required=True, help="Owner user id (UUID)")
    add_parser.add_argument("--file-type", help="MIME type (guessed from the name if omitted)")

    analyze_parser = subparsers.add_parser("analyze", help="Run the full analysis of a document")
    analyze_parser.add_argument("document_id", help="Document id (UUID)")
    analyze_parser.add_argument(
        "--force-refresh", action="store_true", help="Ignore the cached analysis and re-run every stage"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init-db":
        init_db()
    elif args.command == "add-document":
        add_document(args.path, args.user_id, args.file_type)
    elif args.command == "analyze":
        analyze(args.document_id, args.force_refresh)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
