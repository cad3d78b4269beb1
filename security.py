import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from logger import bot_logger

MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # 10MB
READ_CHUNK_SIZE = 64 * 1024


class CommandError(Exception):
    """Базовая ошибка выполнения внешней команды"""

    def __init__(self, command: str, message: str):
        super().__init__(message)
        self.command = command


class CommandTimeout(CommandError):
    def __init__(self, command: str, timeout: float):
        super().__init__(command, f"Команда превысила таймаут ({timeout:g}s)")
        self.timeout = timeout


class CommandFailed(CommandError):
    pass


class OperationInProgress(Exception):
    def __init__(self, running: str):
        super().__init__(f"Уже выполняется операция: {running}")
        self.running = running


@dataclass(frozen=True)
class QueryResult:
    """Результат необязательного запроса: значение или причина недоступности"""
    value: Optional[str] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None and bool(self.value and self.value.strip())

    @property
    def failed(self) -> bool:
        return self.error is not None

    def or_default(self, default: str = "N/A") -> str:
        return self.value.strip() if self.available else default


class AccessGate:
    def __init__(self, authorized_user: str):
        self.authorized_user = str(authorized_user).strip()

    def is_authorized(self, user_id, details: str = "") -> bool:
        """Проверка доступа пользователя"""
        allowed = user_id is not None and str(user_id).strip() == self.authorized_user
        if not allowed:
            bot_logger.log_security_event(user_id, "UNAUTHORIZED_ACCESS", details or "-")
        return allowed


class CommandExecutor:
    def __init__(self, work_dir: str, default_timeout: float = 60.0,
                 max_output: int = MAX_OUTPUT_BYTES):
        self.work_dir = work_dir
        self.default_timeout = default_timeout
        self.max_output = max_output

    async def run(self, command: str, timeout: Optional[float] = None) -> str:
        """Выполнение команды оболочки с таймаутом"""
        timeout = timeout or self.default_timeout
        bot_logger.debug(f"Выполнение: {command} (таймаут {timeout:g}s)")

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.work_dir,
                start_new_session=True
            )
        except OSError as e:
            raise CommandFailed(command, f"Ошибка запуска команды: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                self._communicate(command, process),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            raise CommandTimeout(command, timeout)
        except CommandFailed:
            await self._kill(process)
            raise

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")

        if process.returncode != 0:
            raise CommandFailed(
                command,
                err.strip() or f"Команда завершилась с кодом {process.returncode}"
            )
        return out or err

    async def query(self, command: str, timeout: Optional[float] = None) -> QueryResult:
        """Необязательный запрос: ошибка превращается в недоступный результат"""
        try:
            return QueryResult(value=await self.run(command, timeout))
        except CommandError as e:
            bot_logger.debug(f"Запрос недоступен: {command}: {e}")
            return QueryResult(error=str(e))

    async def _communicate(self, command: str, process) -> Tuple[bytes, bytes]:
        readers = [
            asyncio.ensure_future(self._read_capped(command, process.stdout)),
            asyncio.ensure_future(self._read_capped(command, process.stderr)),
        ]
        try:
            stdout, stderr = await asyncio.gather(*readers)
            await process.wait()
        finally:
            for reader in readers:
                if not reader.done():
                    reader.cancel()
        return stdout, stderr

    async def _read_capped(self, command: str, stream) -> bytes:
        chunks = []
        size = 0
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > self.max_output:
                raise CommandFailed(
                    command, f"Вывод команды превысил {self.max_output} байт"
                )
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    async def _kill(process):
        # Завершаем всю группу процессов, включая дочерние процессы оболочки
        with contextlib.suppress(ProcessLookupError):
            os.killpg(process.pid, signal.SIGKILL)
        await process.wait()


class OperationGuard:
    """Не даёт запускать разрушающие операции одного класса одновременно"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._running: Dict[str, str] = {}

    def running(self, key: str) -> Optional[str]:
        return self._running.get(key)

    @contextlib.asynccontextmanager
    async def hold(self, key: str, operation: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        if lock.locked():
            raise OperationInProgress(self._running.get(key, key))

        await lock.acquire()
        self._running[key] = operation
        try:
            yield
        finally:
            self._running.pop(key, None)
            lock.release()
