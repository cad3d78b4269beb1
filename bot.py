#!/usr/bin/env python3
"""
n8n Management Bot
Управление развёртыванием n8n в Docker через команды Telegram
"""

import asyncio
import sys

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes, filters

from config import Config, ConfigError
from handlers import DeploymentCommands
from logger import bot_logger
from notifications import BotNotifications
from releases import ReleaseChecker
from security import AccessGate, CommandExecutor, OperationGuard


class ManagementBot:
    """Сборка приложения: конфигурация, исполнитель команд, обработчики"""

    def __init__(self, config: Config):
        self.config = config
        self.executor = CommandExecutor(config.work_dir, default_timeout=config.command_timeout)
        self.commands = DeploymentCommands(
            config,
            self.executor,
            ReleaseChecker(config.releases_url, config.version_tag_prefix),
            gate=AccessGate(config.authorized_user),
            guard=OperationGuard()
        )
        self.notifications = BotNotifications(config)

    def build_application(self) -> Application:
        app = (
            ApplicationBuilder()
            .token(self.config.bot_token)
            .concurrent_updates(True)
            .post_init(self.on_startup)
            .post_shutdown(self.on_shutdown)
            .build()
        )

        for name, callback in self.commands.handlers().items():
            # Только новые сообщения: правка старой команды не запускает её повторно
            app.add_handler(CommandHandler(name, callback, filters=filters.UpdateType.MESSAGE))

        app.add_error_handler(self.on_error)
        return app

    def log_banner(self):
        bot_logger.info("========================================")
        bot_logger.info("  n8n Telegram Management Bot v2.0")
        bot_logger.info("========================================")
        bot_logger.info(f"Authorized user ID: {self.config.authorized_user}")
        bot_logger.info(f"n8n directory: {self.config.work_dir}")
        bot_logger.info(f"n8n container: {self.config.container}")

    async def on_startup(self, application: Application):
        bot_logger.log_system_event("STARTUP", "Bot started and waiting for commands")
        await self.notifications.send_startup_notification()

    async def on_shutdown(self, application: Application):
        bot_logger.log_system_event("SHUTDOWN", "Shutting down bot")
        await self.notifications.send_shutdown_notification()

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Ошибки транспорта и необработанные ошибки обработчиков"""
        bot_logger.error(f"Bot error: {context.error}", exc_info=context.error)

    def run(self):
        self.log_banner()
        app = self.build_application()
        # SIGINT/SIGTERM останавливают polling
        app.run_polling(drop_pending_updates=True, allowed_updates=Update.ALL_TYPES)


def main():
    """Главная функция запуска бота"""
    try:
        config = Config.from_env()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    bot_logger.setup(config)
    bot = ManagementBot(config)

    try:
        bot.run()
    except KeyboardInterrupt:
        bot_logger.info("Получен сигнал остановки")
    except Exception as e:
        bot_logger.error(f"Критическая ошибка: {e}", exc_info=True)
        asyncio.run(bot.notifications.send_error_notification(str(e)))
        sys.exit(1)


if __name__ == "__main__":
    main()
