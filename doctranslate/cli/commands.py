"""CLI command implementations.

Contains all cmd_* functions for CLI subcommands.
"""

import asyncio
import sys
from argparse import Namespace
from pathlib import Path

from doctranslate.chunker import split_into_chunks
from doctranslate.config import DEFAULT_MODELS
from doctranslate.constants import SessionStatus
from doctranslate.errors import TranslationError
from doctranslate.events import LoggingEventSink
from doctranslate.orchestrator import TranslationOrchestrator
from doctranslate.sessions import SessionService
from doctranslate.storage import TranslationDB
from doctranslate.templates import TemplateFormatError, TemplateStore


def _open_sessions(args: Namespace) -> SessionService:
    return SessionService(TranslationDB(getattr(args, "db", None)))


def _preview(text: str, max_length: int = 60) -> str:
    flat = " ".join(text.split())
    if len(flat) > max_length:
        return flat[:max_length] + "..."
    return flat


def cmd_translate(args: Namespace) -> None:
    """Translate a file end to end and write the result."""
    source = Path(args.file)
    try:
        content = source.read_text(encoding="utf-8")
    except OSError as e:
        print(f"❌ Cannot read {source}: {e}")
        sys.exit(1)

    templates = TemplateStore()
    sessions = _open_sessions(args)

    try:
        template = templates.register_file(args.template)
        model = args.model or (DEFAULT_MODELS.get(args.provider) if args.provider else None)
        sessions.update_translation_config(
            provider=args.provider, model=model, chunk_size=args.chunk_size
        )
        session = sessions.create_session(args.title or source.stem)
        upload = sessions.upload_and_chunk(session.id, source.name, content)
    except (TranslationError, TemplateFormatError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"\n📄 {source.name}: {upload.char_count} chars -> {upload.total_chunks} chunks")
    print(f"   Template: {template.title} ({template.source_language} -> {template.target_language})")
    print(f"   Session: {session.id}\n")

    orchestrator = TranslationOrchestrator(sessions, templates, events=LoggingEventSink())
    try:
        asyncio.run(orchestrator.translate_all_pending_chunks(session.id, template.id))
    except TranslationError as e:
        print(f"❌ {e}")
        sys.exit(1)

    progress = sessions.get_progress(session.id)
    translated, file_name = sessions.get_translation_for_download(session.id)
    output = Path(args.output) if args.output else source.with_name(file_name)
    output.write_text(translated, encoding="utf-8")

    if progress.status == SessionStatus.COMPLETED:
        print(f"\n✅ Translated {progress.total} chunks -> {output}")
    else:
        print(
            f"\n⚠️  {progress.failed} of {progress.total} chunks failed; "
            f"partial translation written to {output}"
        )
        print(f"   Retry later with the session id: {session.id}")
        sys.exit(1)


def cmd_sessions(args: Namespace) -> None:
    """List translation sessions."""
    sessions = _open_sessions(args).list_sessions(limit=args.limit)

    if not sessions:
        print("No sessions found.")
        return

    print(f"\n📋 Sessions ({len(sessions)}):\n")
    print(f"{'Session ID':<34} {'Status':<12} {'Chunks':<8} {'Updated':<20} Title")
    print("-" * 90)

    for session in sessions:
        print(
            f"{session.id:<34} {session.status:<12} {session.total_chunks:<8} "
            f"{session.updated_at.isoformat()[:19]:<20} {session.title}"
        )

    print()


def cmd_progress(args: Namespace) -> None:
    """Show progress of one session."""
    try:
        progress = _open_sessions(args).get_progress(args.session_id)
    except TranslationError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"\n📊 Session {progress.session_id}: {progress.status}")
    print(f"   Completed:  {progress.completed}/{progress.total} ({progress.percent}%)")
    print(f"   Failed:     {progress.failed}")
    print(f"   Pending:    {progress.pending}")
    if progress.processing:
        print(f"   Processing: {progress.processing}")
    print()


def cmd_chunk(args: Namespace) -> None:
    """Preview how a file would be chunked."""
    try:
        text = Path(args.file).read_text(encoding="utf-8")
        chunks = split_into_chunks(text, args.size)
    except (OSError, ValueError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"\n✂️  {args.file}: {len(text)} chars -> {len(chunks)} chunks (size={args.size})\n")
    for index, chunk in enumerate(chunks):
        print(f"   [{index:>3}] {len(chunk):>6} chars  {_preview(chunk)}")
    print()


__all__ = ["cmd_chunk", "cmd_progress", "cmd_sessions", "cmd_translate"]
