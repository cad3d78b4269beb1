import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from config import Config


class BotLogger:
    def __init__(self):
        self.logger = logging.getLogger('n8n_bot')
        self.command_logger = logging.getLogger('commands')
        self._configured = False

    def setup(self, config: Config):
        """Настройка системы логирования"""
        if self._configured:
            return

        for path in (config.bot_log_file, config.command_log_file):
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.logger.setLevel(getattr(logging, config.log_level, logging.INFO))

        # Ротация логов
        file_handler = RotatingFileHandler(
            config.bot_log_file,
            maxBytes=config.max_log_size,
            backupCount=5,
            encoding='utf-8'
        )

        # Консольный вывод
        console_handler = logging.StreamHandler()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

        # Журнал команд оператора
        self.command_logger.setLevel(logging.INFO)

        command_handler = RotatingFileHandler(
            config.command_log_file,
            maxBytes=config.max_log_size,
            backupCount=10,
            encoding='utf-8'
        )

        command_formatter = logging.Formatter(
            '%(asctime)s - User:%(user_id)s - Command:%(command)s - Status:%(status)s - %(message)s'
        )
        command_handler.setFormatter(command_formatter)
        self.command_logger.addHandler(command_handler)
        self.command_logger.propagate = False

        self._configured = True

    def info(self, message: str):
        """Информационное сообщение"""
        self.logger.info(message)

    def warning(self, message: str):
        """Предупреждение"""
        self.logger.warning(message)

    def error(self, message: str, exc_info=None):
        """Ошибка"""
        self.logger.error(message, exc_info=exc_info)

    def debug(self, message: str):
        """Отладочное сообщение"""
        self.logger.debug(message)

    def log_command(self, user_id, command: str, status: str, error: Optional[str] = None):
        """Запись команды в журнал команд"""
        extra = {
            'user_id': user_id,
            'command': command,
            'status': status
        }

        message = "Command execution"
        if error:
            message += f" - Error: {error}"

        self.command_logger.info(message, extra=extra)

    def log_security_event(self, user_id, event_type: str, details: str):
        """Логирование событий безопасности"""
        self.logger.warning(
            f"SECURITY EVENT - User:{user_id} - Type:{event_type} - Details:{details}"
        )

    def log_system_event(self, event_type: str, details: str):
        """Логирование системных событий"""
        self.logger.info(f"SYSTEM EVENT - Type:{event_type} - Details:{details}")


# Глобальный экземпляр логгера
bot_logger = BotLogger()
