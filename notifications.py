#!/usr/bin/env python3
"""
Модуль для отправки уведомлений о статусе бота
"""

from datetime import datetime

import httpx

from config import Config
from logger import bot_logger

TELEGRAM_API_URL = "https://api.telegram.org"


class BotNotifications:
    def __init__(self, config: Config, transport=None):
        self.config = config
        self.bot_token = config.bot_token
        self.chat_id = config.authorized_user
        self.transport = transport

    async def send_notification(self, message: str, parse_mode: str = "Markdown") -> bool:
        """Отправка уведомления в Telegram"""
        url = f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"
        data = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": parse_mode
        }

        try:
            async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
                response = await client.post(url, json=data)
        except httpx.HTTPError as e:
            bot_logger.error(f"Ошибка отправки уведомления: {e}")
            return False

        if response.status_code != 200:
            bot_logger.error(f"HTTP ошибка при отправке уведомления: {response.status_code}")
            return False

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not result.get("ok"):
            bot_logger.error(f"Ошибка Telegram API: {result}")
            return False

        bot_logger.info("Уведомление отправлено успешно")
        return True

    async def send_startup_notification(self) -> bool:
        """Уведомление о запуске бота"""
        if not self.config.notify_on_start:
            return False

        current_time = datetime.now().strftime("%d.%m.%Y %H:%M:%S")

        message = (
            "🤖 *n8n Management Bot запущен*\n\n"
            f"⏰ Время запуска: `{current_time}`\n"
            f"📂 Каталог: `{self.config.work_dir}`\n"
            f"📦 Контейнер: `{self.config.container}`\n\n"
            "Отправьте /help для списка команд"
        )
        return await self.send_notification(message)

    async def send_shutdown_notification(self) -> bool:
        """Уведомление об остановке бота"""
        if not self.config.notify_on_start:
            return False

        current_time = datetime.now().strftime("%d.%m.%Y %H:%M:%S")

        message = (
            "🛑 *n8n Management Bot остановлен*\n\n"
            f"⏰ Время остановки: `{current_time}`\n"
            "⚠️ Команды недоступны до перезапуска бота"
        )
        return await self.send_notification(message)

    async def send_error_notification(self, error_message: str) -> bool:
        """Уведомление о критической ошибке"""
        current_time = datetime.now().strftime("%d.%m.%Y %H:%M:%S")

        message = (
            "❌ *Ошибка n8n Management Bot*\n\n"
            f"⏰ Время: `{current_time}`\n"
            f"🔴 Ошибка: `{error_message[:200]}`\n\n"
            "Перезапустите бота вручную"
        )
        return await self.send_notification(message)
