"""Tests for doctranslate.cli module."""

import argparse
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage

from doctranslate.cli import create_parser
from doctranslate.cli.commands import cmd_chunk, cmd_progress, cmd_sessions, cmd_translate
from doctranslate.constants import SessionStatus
from doctranslate.sessions import SessionService
from doctranslate.storage import TranslationDB

TEMPLATE = """---
title: Test
sourceLanguage: ja
targetLanguage: en
---
<|im_start|>SYSTEM
Translate.
<|im_end|>
<|im_start|>USER
{{ current.source_text }}
<|im_end|>
"""


def fake_llm(failing: set[str] | None = None) -> MagicMock:
    """Chat model double that answers the last message with S -> T."""

    async def ainvoke(messages):
        text = messages[-1].content
        if text in (failing or set()):
            raise ValueError("blocked")
        return AIMessage(content=text.replace("S", "T"))

    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=ainvoke)
    return llm


class TestCreateParser:
    """Tests for create_parser()."""

    def test_translate_arguments(self):
        args = create_parser().parse_args(
            ["--db", "x.db", "translate", "novel.md", "--template", "t.md", "--chunk-size", "1500"]
        )
        assert args.command == "translate"
        assert args.db == "x.db"
        assert args.chunk_size == 1500
        assert args.func is cmd_translate

    def test_translate_requires_template(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["translate", "novel.md"])

    def test_chunk_default_size(self):
        args = create_parser().parse_args(["chunk", "novel.md"])
        assert args.size > 0
        assert args.func is cmd_chunk


class TestCmdTranslate:
    """Tests for cmd_translate()."""

    def _create_args(self, tmp_path, **overrides):
        source = tmp_path / "novel.txt"
        source.write_text("S0\n\nS1\n\nS2", encoding="utf-8")
        template = tmp_path / "ja-en.md"
        template.write_text(TEMPLATE, encoding="utf-8")
        values = dict(
            file=str(source),
            template=str(template),
            title=None,
            output=None,
            provider=None,
            model=None,
            chunk_size=5,
            db=str(tmp_path / "cli.db"),
        )
        values.update(overrides)
        return argparse.Namespace(**values)

    def test_translates_and_writes_output(self, tmp_path, capsys):
        args = self._create_args(tmp_path)

        with patch("doctranslate.llm.client.create_llm", return_value=fake_llm()):
            cmd_translate(args)

        output = tmp_path / "novel_translated.txt"
        assert output.read_text(encoding="utf-8") == "T0\n\nT1\n\nT2"
        assert "3 chunks" in capsys.readouterr().out

        sessions = SessionService(TranslationDB(args.db)).list_sessions()
        assert sessions[0].title == "novel"
        assert sessions[0].status == SessionStatus.COMPLETED

    def test_partial_failure_exits_nonzero(self, tmp_path):
        args = self._create_args(tmp_path, output=str(tmp_path / "out.txt"))

        with patch("doctranslate.llm.client.create_llm", return_value=fake_llm({"S1"})):
            with pytest.raises(SystemExit) as exc_info:
                cmd_translate(args)

        assert exc_info.value.code == 1
        assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "T0\n\nT2"

    def test_missing_template(self, tmp_path, capsys):
        args = self._create_args(tmp_path, template=str(tmp_path / "missing.md"))

        with pytest.raises(SystemExit):
            cmd_translate(args)
        assert "❌" in capsys.readouterr().out


class TestOtherCommands:
    """Tests for sessions, progress and chunk commands."""

    def test_sessions_empty(self, tmp_path, capsys):
        cmd_sessions(argparse.Namespace(db=str(tmp_path / "cli.db"), limit=10))
        assert "No sessions found." in capsys.readouterr().out

    def test_sessions_lists_rows(self, tmp_path, capsys):
        db_path = str(tmp_path / "cli.db")
        SessionService(TranslationDB(db_path)).create_session("My Novel")

        cmd_sessions(argparse.Namespace(db=db_path, limit=10))

        out = capsys.readouterr().out
        assert "My Novel" in out
        assert "draft" in out

    def test_progress(self, tmp_path, capsys):
        db_path = str(tmp_path / "cli.db")
        service = SessionService(TranslationDB(db_path))
        session = service.create_session("My Novel")
        service.upload_and_chunk(session.id, "novel.txt", "Hello.")

        cmd_progress(argparse.Namespace(db=db_path, session_id=session.id))

        out = capsys.readouterr().out
        assert "ready" in out
        assert "0/1 (0%)" in out

    def test_progress_missing_session(self, tmp_path, capsys):
        with pytest.raises(SystemExit):
            cmd_progress(argparse.Namespace(db=str(tmp_path / "cli.db"), session_id="missing"))
        assert "Session not found" in capsys.readouterr().out

    def test_chunk_preview(self, tmp_path, capsys):
        source = tmp_path / "novel.txt"
        source.write_text("First paragraph.\n\nSecond paragraph.", encoding="utf-8")

        cmd_chunk(argparse.Namespace(file=str(source), size=20))

        out = capsys.readouterr().out
        assert "2 chunks" in out
        assert "Second paragraph." in out
