"""
Обработчики команд бота управления n8n.

Каждая команда проверяет отправителя, выполняет фиксированный набор
команд оболочки через CommandExecutor и отвечает в чат. Обработчики не
хранят состояния между сообщениями; общим является только OperationGuard,
который не даёт одновременно выполнять /update, /restart и /backup.
"""

import asyncio
import os
import shlex
import tempfile
from functools import wraps
from typing import Awaitable, Callable, Dict, List, Optional

from telegram import Update
from telegram.ext import ContextTypes

from config import Config
from logger import bot_logger
from releases import ReleaseChecker
from security import (
    AccessGate, CommandExecutor, OperationGuard, OperationInProgress, QueryResult,
)
from text_utils import code_block, format_error, send_long_message, strip_ansi

DEFAULT_LOG_LINES = 50
LOGS_TIMEOUT = 30
LOGS_FILE_THRESHOLD = 3900
LOGS_INLINE_LIMIT = 3800

RESTART_TIMEOUT = 120
RESTART_SETTLE_DELAY = 15

BACKUP_TIMEOUT = 300

STOP_TIMEOUT = 60
BUILD_TIMEOUT = 600
START_TIMEOUT = 120
UPDATE_SETTLE_DELAY = 20
PRUNE_TIMEOUT = 60

UNKNOWN = "unknown"
NOT_AVAILABLE = "N/A"
RUNNING_MARKER = "Up"

# Класс операций, которые нельзя выполнять одновременно
DEPLOYMENT_OPERATIONS = "deployment"

HELP_TEXT = """
*n8n Management Bot v2.0*

Доступные команды:

/status - Статус сервера и контейнеров
/logs [N] - Последние N строк логов (по умолчанию 50)
/update - Обновить n8n до последней версии
/backup - Создать резервную копию
/restart - Перезапустить n8n
/disk - Информация о дисковом пространстве
/help - Показать эту справку

_Бот управляет n8n через Docker_
"""

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[Optional[str]]]


def parse_line_count(args: Optional[List[str]], default: int = DEFAULT_LOG_LINES) -> int:
    """Количество строк логов из аргументов команды"""
    if not args:
        return default
    try:
        lines = int(args[0])
    except ValueError:
        return default
    return lines if lines > 0 else default


def _command_text(update: Update) -> str:
    message = update.effective_message
    return (message.text or "") if message else ""


def authorized(func):
    """
    Молча отбрасывает сообщения от всех, кроме авторизованного пользователя.

    Обработчик возвращает текст ошибки или None; результат пишется
    в журнал команд как ERROR или SUCCESS.
    """
    @wraps(func)
    async def wrapped(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        user = update.effective_user
        user_id = user.id if user else None
        text = _command_text(update)
        command = text.split(maxsplit=1)[0] if text.strip() else func.__name__

        if not self.gate.is_authorized(user_id, command):
            return

        bot_logger.info(f"Получена команда {command} от пользователя {user_id}")
        try:
            error = await func(self, update, context)
        except Exception as e:
            bot_logger.log_command(user_id, command, "ERROR", str(e))
            raise

        if error:
            bot_logger.log_command(user_id, command, "ERROR", error)
        else:
            bot_logger.log_command(user_id, command, "SUCCESS")

    return wrapped


def exclusive(operation: str):
    """Отклоняет команду, пока выполняется другая операция развёртывания"""
    def decorator(func):
        @wraps(func)
        async def wrapped(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
            try:
                async with self.guard.hold(DEPLOYMENT_OPERATIONS, operation):
                    return await func(self, update, context)
            except OperationInProgress as e:
                bot_logger.warning(f"{operation} отклонена: выполняется {e.running}")
                await context.bot.send_message(
                    chat_id=update.effective_chat.id,
                    text=f"⏳ {e}. Дождитесь завершения и повторите {operation}"
                )
                return str(e)
        return wrapped
    return decorator


class DeploymentCommands:
    """Команды управления развёртыванием n8n"""

    def __init__(self, config: Config, executor: CommandExecutor,
                 release_checker: ReleaseChecker,
                 gate: Optional[AccessGate] = None,
                 guard: Optional[OperationGuard] = None,
                 sleep=asyncio.sleep):
        self.config = config
        self.executor = executor
        self.release_checker = release_checker
        self.gate = gate or AccessGate(config.authorized_user)
        self.guard = guard or OperationGuard()
        self._sleep = sleep

        container = shlex.quote(config.container)
        service = shlex.quote(config.service)
        work_dir = shlex.quote(config.work_dir)

        self.version_command = f"docker exec {container} n8n --version 2>/dev/null"
        self.container_status_command = (
            f"docker ps --filter name={container} --format " + '"{{.Status}}"'
        )
        self.compose_prefix = f"cd {work_dir} && docker compose"
        self.service = service
        self.container = container

    def handlers(self) -> Dict[str, Handler]:
        """Соответствие команда -> обработчик"""
        return {
            "start": self.cmd_help,
            "help": self.cmd_help,
            "status": self.cmd_status,
            "logs": self.cmd_logs,
            "restart": self.cmd_restart,
            "update": self.cmd_update,
            "backup": self.cmd_backup,
            "disk": self.cmd_disk,
        }

    # ------------------------------------------------------------------

    @authorized
    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await context.bot.send_message(
            chat_id=update.effective_chat.id, text=HELP_TEXT, parse_mode="Markdown"
        )

    @authorized
    async def cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Статус сервера: пять независимых запросов параллельно"""
        chat_id = update.effective_chat.id
        placeholder = await context.bot.send_message(
            chat_id=chat_id, text="⏳ Получаю статус системы..."
        )

        try:
            uptime, containers, disk, memory, version = await asyncio.gather(
                self.executor.query("uptime -p"),
                self.executor.query('docker ps --format "{{.Names}}: {{.Status}}"'),
                self.executor.query("df -h / | tail -1 | awk '{print $5\" used of \"$2}'"),
                self.executor.query("free -h | grep Mem | awk '{print $3\" / \"$2}'"),
                self.executor.query(self.version_command),
            )
            text = self.format_status(uptime, containers, disk, memory, version)
            await context.bot.edit_message_text(
                text,
                chat_id=chat_id,
                message_id=placeholder.message_id,
                parse_mode="Markdown"
            )
        except Exception as e:
            bot_logger.error(f"Ошибка в /status: {e}", exc_info=True)
            await context.bot.edit_message_text(
                f"❌ Ошибка: {format_error(e)}",
                chat_id=chat_id,
                message_id=placeholder.message_id
            )
            return format_error(e)

    @staticmethod
    def format_status(uptime: QueryResult, containers: QueryResult, disk: QueryResult,
                      memory: QueryResult, version: QueryResult) -> str:
        n8n_version = f"v{version.value.strip()}" if version.available else NOT_AVAILABLE
        return (
            "📊 *Статус сервера*\n\n"
            f"⏱ Uptime: {uptime.or_default(NOT_AVAILABLE)}\n"
            f"💾 Диск: {disk.or_default(NOT_AVAILABLE)}\n"
            f"🧠 RAM: {memory.or_default(NOT_AVAILABLE)}\n"
            f"📦 n8n: {n8n_version}\n\n"
            "*Контейнеры:*\n"
            f"{code_block(containers.or_default(NOT_AVAILABLE))}"
        )

    @authorized
    async def cmd_logs(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        chat_id = update.effective_chat.id
        lines = parse_line_count(context.args)

        await context.bot.send_message(
            chat_id=chat_id, text=f"⏳ Получаю последние {lines} строк логов..."
        )

        try:
            logs = await self.executor.run(
                f"docker logs {self.container} --tail {lines} 2>&1", timeout=LOGS_TIMEOUT
            )
            logs = strip_ansi(logs)

            if not logs or not logs.strip():
                await context.bot.send_message(chat_id=chat_id, text="📋 Логи пусты")
                return

            if len(logs) > LOGS_FILE_THRESHOLD:
                await self._send_logs_file(context, chat_id, logs, lines)
            else:
                await context.bot.send_message(
                    chat_id=chat_id,
                    text=f"📋 *Логи n8n:*\n```\n{logs[:LOGS_INLINE_LIMIT]}\n```",
                    parse_mode="Markdown"
                )
        except Exception as e:
            bot_logger.error(f"Ошибка в /logs: {e}")
            await context.bot.send_message(
                chat_id=chat_id, text=f"❌ Ошибка получения логов: {format_error(e)}"
            )
            return format_error(e)

    async def _send_logs_file(self, context, chat_id, logs: str, lines: int):
        """Длинные логи отправляются файлом; временный файл удаляется сразу после отправки"""
        fd, path = tempfile.mkstemp(prefix="n8n_logs_", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(logs)
            with open(path, "rb") as document:
                await context.bot.send_document(
                    chat_id=chat_id,
                    document=document,
                    filename=os.path.basename(path),
                    caption=f"📋 Последние {lines} строк логов n8n"
                )
        finally:
            os.unlink(path)

    @authorized
    @exclusive("/restart")
    async def cmd_restart(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        chat_id = update.effective_chat.id
        await context.bot.send_message(chat_id=chat_id, text="🔄 Перезапускаю n8n...")

        try:
            await self.executor.run(f"docker restart {self.container}", timeout=RESTART_TIMEOUT)

            # Ждём запуска
            await self._sleep(RESTART_SETTLE_DELAY)

            status = await self.executor.run(self.container_status_command)

            if RUNNING_MARKER in status:
                text = f"✅ n8n успешно перезапущен\n📊 Статус: {status.strip()}"
            else:
                text = f"⚠️ n8n перезапущен, но статус: {status.strip()}\n\nПроверьте логи: /logs"
            await context.bot.send_message(chat_id=chat_id, text=text)
        except Exception as e:
            bot_logger.error(f"Ошибка в /restart: {e}")
            await context.bot.send_message(
                chat_id=chat_id, text=f"❌ Ошибка перезапуска: {format_error(e)}"
            )
            return format_error(e)

    @authorized
    @exclusive("/update")
    async def cmd_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        chat_id = update.effective_chat.id

        async def say(text: str, **options):
            await context.bot.send_message(chat_id=chat_id, text=text, **options)

        try:
            await self._run_update(say)
        except Exception as e:
            bot_logger.error(f"Ошибка обновления: {e}", exc_info=True)
            await send_long_message(
                context.bot,
                chat_id,
                "❌ Ошибка обновления\n\n"
                f"{format_error(e)}\n\n"
                "Попробуйте выполнить вручную:\n"
                f"{self.config.manual_update_hint}"
            )
            return format_error(e)

    async def _run_update(self, say):
        """Последовательное обновление; любая ошибка обязательного шага прерывает процесс"""
        await say("🔍 Проверяю версии n8n...")

        current = await self.executor.query(self.version_command)
        latest = await self.release_checker.latest_version()
        current_version = current.or_default(UNKNOWN)
        latest_version = latest.or_default(UNKNOWN)

        await say(
            f"📦 Текущая версия: *{current_version}*\n🆕 Последняя версия: *{latest_version}*",
            parse_mode="Markdown"
        )

        if current.available and latest.available and current_version == latest_version:
            await say("✅ У вас уже установлена последняя версия!")
            return

        await say("💾 Создаю резервную копию перед обновлением...")
        backup = await self.executor.query(self.config.backup_command, timeout=BACKUP_TIMEOUT)
        if not backup.failed:
            await say("✅ Бэкап создан")
        else:
            bot_logger.warning(f"Ошибка бэкапа: {backup.error}")
            await say("⚠️ Не удалось создать бэкап, но продолжаю обновление...")

        await say("⏹ Останавливаю n8n...")
        await self.executor.run(f"{self.compose_prefix} stop {self.service}", timeout=STOP_TIMEOUT)

        await say("🔨 Пересобираю образ n8n (это может занять 5-10 минут)...")
        await self.executor.run(
            f"{self.compose_prefix} build --no-cache {self.service}", timeout=BUILD_TIMEOUT
        )

        await say("🚀 Запускаю обновлённый n8n...")
        await self.executor.run(f"{self.compose_prefix} up -d {self.service}", timeout=START_TIMEOUT)

        await say("⏳ Ожидаю запуска сервиса...")
        await self._sleep(UPDATE_SETTLE_DELAY)

        new_version = (await self.executor.query(self.version_command)).or_default(UNKNOWN)

        await say("🧹 Очищаю старые образы...")
        await self.executor.query("docker image prune -f", timeout=PRUNE_TIMEOUT)

        status = (await self.executor.query(self.container_status_command)).or_default(UNKNOWN)

        if RUNNING_MARKER in status:
            await say(
                "✅ *Обновление завершено успешно!*\n\n"
                f"📦 Старая версия: {current_version}\n"
                f"🆕 Новая версия: {new_version}\n"
                f"📊 Статус: {status}",
                parse_mode="Markdown"
            )
        else:
            await say(
                "⚠️ *Обновление завершено с предупреждением*\n\n"
                "Контейнер может быть ещё в процессе запуска.\n"
                f"Статус: {status}\n\n"
                "Проверьте через минуту: /status",
                parse_mode="Markdown"
            )

    @authorized
    @exclusive("/backup")
    async def cmd_backup(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        chat_id = update.effective_chat.id
        await context.bot.send_message(chat_id=chat_id, text="💾 Создаю резервную копию...")

        try:
            await self.executor.run(f"{self.config.backup_command} 2>&1", timeout=BACKUP_TIMEOUT)

            backups_glob = f"{shlex.quote(self.config.work_dir)}/backups/*.tar.gz*"
            backup_info = await self.executor.query(f"ls -lh {backups_glob} 2>/dev/null | tail -1")

            await send_long_message(
                context.bot,
                chat_id,
                "✅ *Бэкап создан успешно!*\n\n"
                f"📁 {self._backup_line(backup_info)}",
                parse_mode="Markdown"
            )
        except Exception as e:
            bot_logger.error(f"Ошибка в /backup: {e}")
            await context.bot.send_message(
                chat_id=chat_id, text=f"❌ Ошибка создания бэкапа: {format_error(e)}"
            )
            return format_error(e)

    @staticmethod
    def _backup_line(backup_info: QueryResult) -> str:
        info = backup_info.or_default("")
        return f"`{info}`" if info else "Файл создан"

    @authorized
    async def cmd_disk(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        chat_id = update.effective_chat.id

        try:
            disk_usage, docker_usage = await asyncio.gather(
                self.executor.run("df -h /"),
                self.executor.query("docker system df"),
            )

            text = (
                "💾 *Дисковое пространство*\n\n"
                "*Система:*\n"
                f"{code_block(disk_usage)}\n\n"
                "*Docker:*\n"
                f"{code_block(docker_usage.or_default(NOT_AVAILABLE))}"
            )
            await send_long_message(context.bot, chat_id, text, parse_mode="Markdown")
        except Exception as e:
            bot_logger.error(f"Ошибка в /disk: {e}")
            await context.bot.send_message(chat_id=chat_id, text=f"❌ Ошибка: {format_error(e)}")
            return format_error(e)
