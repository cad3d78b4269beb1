import asyncio
import re
from typing import List

from security import CommandTimeout

MESSAGE_MAX_LENGTH = 4000
CHUNK_DELAY = 0.1  # пауза между частями, ограничение Telegram на частоту сообщений

ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')


def strip_ansi(text: str) -> str:
    """
    Очистка вывода контейнера от escape-последовательностей (цвета docker logs)
    """
    if not text:
        return text
    text = ANSI_ESCAPE.sub('', text)
    # Управляющие символы, кроме табов и переносов строк
    return re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', '', text)


def code_block(text: str) -> str:
    return f"```\n{text.strip()}\n```"


def format_error(error: Exception) -> str:
    """Текст ошибки для чата; таймаут отличается от прочих ошибок"""
    if isinstance(error, CommandTimeout):
        return f"⏰ {error}"
    return str(error) or error.__class__.__name__


def split_message(text: str, max_length: int = MESSAGE_MAX_LENGTH) -> List[str]:
    """Разбивка текста на части фиксированной длины"""
    if len(text) <= max_length:
        return [text]
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


async def send_long_message(bot, chat_id, text: str, **options):
    """
    Отправка длинного сообщения частями.

    Параметры форматирования (parse_mode и т.п.) применяются только к первой
    части.
    Ошибка отправки любой части прерывает отправку оставшихся.
    """
    parts = split_message(text)
    if len(parts) == 1:
        return await bot.send_message(chat_id=chat_id, text=text, **options)

    sent = None
    for index, part in enumerate(parts):
        if index:
            await asyncio.sleep(CHUNK_DELAY)
        message = await bot.send_message(
            chat_id=chat_id, text=part, **(options if index == 0 else {})
        )
        sent = sent or message
    return sent
