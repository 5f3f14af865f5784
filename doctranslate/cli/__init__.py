"""doctranslate CLI - Command-line interface for document translation.

Usage:
    doctranslate translate novel.md --template templates/ja-en.md
    doctranslate translate novel.md --template ja-en.md --output out.md --chunk-size 1500
    doctranslate sessions
    doctranslate progress <session-id>
    doctranslate chunk novel.md --size 2000
"""

import argparse

from doctranslate.cli import commands
from doctranslate.cli.commands import (
    cmd_chunk,
    cmd_progress,
    cmd_sessions,
    cmd_translate,
)
from doctranslate.config import DEFAULT_CHUNK_SIZE
from doctranslate.utils.logging import setup_logging

__all__ = [
    "commands",
    "main",
    "create_parser",
]


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Returns:
        Configured ArgumentParser for testing and main().
    """
    parser = argparse.ArgumentParser(
        description="doctranslate - Chunked LLM document translation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db", type=str, default=None, help="SQLite database path (default: outputs/doctranslate.db)"
    )
    parser.add_argument(
        "--log-level", type=str, default=None, help="Logging level (default: DOCTRANSLATE_LOG_LEVEL)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Translate command
    translate_parser = subparsers.add_parser("translate", help="Translate a text file")
    translate_parser.add_argument("file", help="Source text file")
    translate_parser.add_argument(
        "--template", "-t", required=True, help="Template file with YAML front matter"
    )
    translate_parser.add_argument("--title", type=str, default=None, help="Session title")
    translate_parser.add_argument(
        "--output", "-o", type=str, default=None, help="Output file (default: <name>_translated<ext>)"
    )
    translate_parser.add_argument("--provider", type=str, default=None, help="LLM provider")
    translate_parser.add_argument("--model", type=str, default=None, help="Model name")
    translate_parser.add_argument(
        "--chunk-size", type=int, default=None, help="Target characters per chunk"
    )
    translate_parser.set_defaults(func=cmd_translate)

    # Sessions command
    sessions_parser = subparsers.add_parser("sessions", help="List translation sessions")
    sessions_parser.add_argument(
        "--limit", "-l", type=int, default=20, help="Maximum sessions to show"
    )
    sessions_parser.set_defaults(func=cmd_sessions)

    # Progress command
    progress_parser = subparsers.add_parser("progress", help="Show session progress")
    progress_parser.add_argument("session_id", help="Session ID")
    progress_parser.set_defaults(func=cmd_progress)

    # Chunk command
    chunk_parser = subparsers.add_parser("chunk", help="Preview chunking of a file")
    chunk_parser.add_argument("file", help="Source text file")
    chunk_parser.add_argument(
        "--size", "-s", type=int, default=DEFAULT_CHUNK_SIZE, help="Target characters per chunk"
    )
    chunk_parser.set_defaults(func=cmd_chunk)

    return parser


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
