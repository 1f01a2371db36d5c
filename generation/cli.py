"""
Command-line entry point for the RAG pipeline.

Commands:
    ask    Ingest a plain-text file, then answer questions interactively.
    serve  Run the HTTP API with uvicorn.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from common.exceptions import RetrievalError, format_error_chain
from common.logging_config import get_logger, setup_logging
from retrieval.config import RetrievalConfig
from retrieval.service import Retriever

from .config import GenerationConfig
from .service import GenerationService

logger = get_logger("app.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ask questions about a text document using retrieval-augmented generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ask --file report.txt
  %(prog)s ask --file report.txt -q "What are the top AI trends?"
  %(prog)s serve --port 8000
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed output")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", help="Ingest a text file and answer questions")
    ask.add_argument("--file", type=Path, required=True, help="Plain-text document to ingest")
    ask.add_argument("-q", "--question", default=None, help="Answer one question and exit")
    ask.add_argument("--top-k", type=int, default=None, help="Chunks to retrieve per question")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    return parser


def _ask(service: GenerationService, question: str, top_k: Optional[int]) -> None:
    result = service.ask(question, top_k=top_k)
    print(result.answer)


def run_ask(args: argparse.Namespace) -> int:
    if not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    with Retriever.from_config(RetrievalConfig.from_env()) as retriever:
        service = GenerationService(retriever, config=GenerationConfig.from_env())
        return _session(service, args)


def _session(service: GenerationService, args: argparse.Namespace) -> int:
    report = service.retriever.ingest_file(str(args.file))
    print(f"Indexed {report.chunks_indexed}/{report.chunks_total} chunks from {args.file.name}")
    if report.warnings:
        print(f"Skipped {report.chunks_skipped} chunk(s); see log for details")

    if args.question:
        _ask(service, args.question, args.top_k)
        return 0

    print("Type a question, or 'exit' to quit.")
    while True:
        try:
            question = input("\n> ").strip()
        except EOFError:
            break
        if not question:
            continue
        if question.lower() in {"exit", "quit"}:
            break
        try:
            _ask(service, question, args.top_k)
        except RetrievalError as e:
            logger.error(format_error_chain(e))
    return 0


def run_serve(args: argparse.Namespace) -> int:
    uvicorn.run("generation.app:create_app", factory=True, host=args.host, port=args.port)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = _build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    try:
        if args.command == "ask":
            return run_ask(args)
        return run_serve(args)
    except RetrievalError as e:
        logger.error(format_error_chain(e))
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
