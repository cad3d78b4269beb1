"""Tests for message splitting and formatting helpers."""

import math

import pytest

import text_utils
from security import CommandFailed, CommandTimeout
from tests.fakes import FakeBot
from text_utils import (
    MESSAGE_MAX_LENGTH, code_block, format_error, send_long_message, split_message, strip_ansi,
)


@pytest.fixture(autouse=True)
def no_chunk_delay(monkeypatch):
    monkeypatch.setattr(text_utils, "CHUNK_DELAY", 0)


class TestSplitMessage:
    def test_short_text_is_single_part(self) -> None:
        assert split_message("hello") == ["hello"]

    def test_boundary_length_is_single_part(self) -> None:
        text = "x" * MESSAGE_MAX_LENGTH
        assert split_message(text) == [text]

    def test_long_text_is_split_without_word_boundaries(self) -> None:
        text = "word " * 2000

        parts = split_message(text)

        assert len(parts) == math.ceil(len(text) / MESSAGE_MAX_LENGTH)
        assert all(len(part) == MESSAGE_MAX_LENGTH for part in parts[:-1])
        assert "".join(parts) == text


class TestSendLongMessage:
    async def test_short_text_single_send_with_options(self) -> None:
        bot = FakeBot()

        await send_long_message(bot, 100, "*bold*", parse_mode="Markdown")

        assert bot.sent == [{"chat_id": 100, "text": "*bold*", "options": {"parse_mode": "Markdown"}}]

    @pytest.mark.parametrize("length", [4001, 8000, 12001])
    async def test_long_text_sent_in_order(self, length: int) -> None:
        bot = FakeBot()
        text = "".join(chr(ord("a") + i % 26) for i in range(length))

        await send_long_message(bot, 100, text, parse_mode="Markdown")

        assert len(bot.sent) == math.ceil(length / MESSAGE_MAX_LENGTH)
        assert "".join(bot.texts) == text
        assert bot.sent[0]["options"] == {"parse_mode": "Markdown"}
        assert all(message["options"] == {} for message in bot.sent[1:])

    async def test_failed_send_stops_remaining_parts(self) -> None:
        bot = FakeBot(fail_on_send=1)

        with pytest.raises(RuntimeError):
            await send_long_message(bot, 100, "x" * 12000)

        assert len(bot.sent) == 1

    async def test_delay_between_parts(self, monkeypatch) -> None:
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(text_utils, "CHUNK_DELAY", 0.1)
        monkeypatch.setattr(text_utils.asyncio, "sleep", fake_sleep)

        await send_long_message(FakeBot(), 100, "x" * 9000)

        assert delays == [0.1, 0.1]


class TestFormatting:
    def test_strip_ansi(self) -> None:
        assert strip_ansi("\x1b[1;31mERROR\x1b[0m done\r\n") == "ERROR done\r\n"

    def test_strip_ansi_keeps_empty(self) -> None:
        assert strip_ansi("") == ""

    def test_code_block(self) -> None:
        assert code_block("  output\n") == "```\noutput\n```"

    def test_format_error_marks_timeouts(self) -> None:
        assert format_error(CommandTimeout("docker compose build", 600)) == (
            "⏰ Команда превысила таймаут (600s)"
        )

    def test_format_error_passes_message_through(self) -> None:
        assert format_error(CommandFailed("docker", "daemon down")) == "daemon down"
        assert format_error(RuntimeError()) == "RuntimeError"
