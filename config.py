import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


DEFAULT_WORK_DIR = "/opt/main"
DEFAULT_RELEASES_URL = "https://api.github.com/repos/n8n-io/n8n/releases/latest"


class ConfigError(Exception):
    """Отсутствует или некорректна настройка"""


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_number(name: str, default: str, convert):
    value = os.getenv(name, default).strip()
    try:
        return convert(value)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from None


@dataclass(frozen=True)
class Config:
    # Основные настройки
    bot_token: str
    authorized_user: str
    work_dir: str = DEFAULT_WORK_DIR

    # Docker
    container: str = "n8n"
    service: str = "n8n"
    backup_script: Optional[str] = None
    command_timeout: float = 60.0

    # Проверка версий
    releases_url: str = DEFAULT_RELEASES_URL
    version_tag_prefix: str = "n8n@"

    # Уведомления о запуске/остановке
    notify_on_start: bool = True

    # Логирование
    bot_log_file: str = "logs/bot.log"
    command_log_file: str = "logs/commands.log"
    log_level: str = "INFO"
    max_log_size: int = 10485760  # 10MB

    @property
    def backup_command(self) -> str:
        return self.backup_script or f"{self.work_dir}/backup_n8n.sh"

    @property
    def manual_update_hint(self) -> str:
        return f"cd {self.work_dir} && ./update_n8n.sh"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Config":
        """Загрузка конфигурации из окружения (и .env)"""
        if dotenv:
            load_dotenv()

        bot_token = os.getenv("TG_BOT_TOKEN", "").strip()
        authorized_user = os.getenv("TG_USER_ID", "").strip()

        missing = [
            name for name, value in (
                ("TG_BOT_TOKEN", bot_token),
                ("TG_USER_ID", authorized_user),
            ) if not value
        ]
        if missing:
            raise ConfigError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        return cls(
            bot_token=bot_token,
            authorized_user=authorized_user,
            work_dir=os.getenv("N8N_DIR", DEFAULT_WORK_DIR),
            container=os.getenv("N8N_CONTAINER", "n8n"),
            service=os.getenv("N8N_SERVICE", "n8n"),
            backup_script=os.getenv("BACKUP_SCRIPT") or None,
            command_timeout=_env_number("COMMAND_TIMEOUT", "60", float),
            releases_url=os.getenv("RELEASES_URL", DEFAULT_RELEASES_URL),
            version_tag_prefix=os.getenv("VERSION_TAG_PREFIX", "n8n@"),
            notify_on_start=_env_bool("NOTIFY_ON_START", "true"),
            bot_log_file=os.getenv("BOT_LOG_FILE", "logs/bot.log"),
            command_log_file=os.getenv("COMMAND_LOG_FILE", "logs/commands.log"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            max_log_size=_env_number("MAX_LOG_SIZE", "10485760", int),
        )
