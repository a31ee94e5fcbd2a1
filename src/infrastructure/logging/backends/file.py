"""
File Backend for Persistent Logging

Async file logging with size-based rotation, text or JSON-lines output.
Handles warnings, errors and audit records.
"""

import asyncio
from datetime import datetime
from pathlib import Path

import aiofiles
import aiofiles.os
import msgspec

from ..interfaces import LogBackend, LogRecord, LogLevel, LogType
from ..structs import FileBackendConfig


class FileBackend(LogBackend):
    """
    File logging backend.

    Writes go through aiofiles so the event loop is never blocked on disk.
    """

    def __init__(self, config: FileBackendConfig, name: str = "file"):
        if not isinstance(config, FileBackendConfig):
            raise TypeError(f"Expected FileBackendConfig, got {type(config)}")

        super().__init__(name)
        self.config = config
        self.file_path = Path(config.path)
        self.format_type = config.format
        self.min_level = LogLevel[config.min_level.upper()]
        self.max_file_size = config.max_size_mb * 1024 * 1024
        self.backup_count = config.backup_count
        self.enabled = config.enabled

        if self.enabled:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = asyncio.Lock()

    def should_handle(self, record: LogRecord) -> bool:
        if record.level < self.min_level:
            return False
        return record.log_type in (LogType.TEXT, LogType.AUDIT)

    async def write(self, record: LogRecord) -> None:
        if self.format_type == 'json':
            formatted = self._format_json(record)
        else:
            formatted = self._format_text(record)

        async with self._lock:
            await self._check_rotation()
            async with aiofiles.open(self.file_path, 'a', encoding='utf-8') as f:
                await f.write(formatted + '\n')

    async def flush(self) -> None:
        # Every write opens, appends and closes the file
        pass

    async def _check_rotation(self) -> None:
        if not self.file_path.exists():
            return
        file_size = await aiofiles.os.path.getsize(self.file_path)
        if file_size >= self.max_file_size:
            self._rotate_file()

    def _rotate_file(self) -> None:
        for i in range(self.backup_count - 1, 0, -1):
            old_file = self.file_path.with_suffix(f'.{i}')
            new_file = self.file_path.with_suffix(f'.{i + 1}')
            if old_file.exists():
                if new_file.exists():
                    new_file.unlink()
                old_file.rename(new_file)

        if self.backup_count == 0:
            self.file_path.unlink()
            return

        backup_file = self.file_path.with_suffix('.1')
        if backup_file.exists():
            backup_file.unlink()
        self.file_path.rename(backup_file)

    def _format_text(self, record: LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.timestamp).isoformat()
        message = f"[{timestamp}] {record.level.name} {record.logger_name}: {record.message}"

        if record.context:
            context_parts = [f"{k}={v}" for k, v in record.context.items()]
            message += f" | {', '.join(context_parts)}"

        if record.correlation_id:
            message += f" | correlation_id={record.correlation_id}"
        return message

    def _format_json(self, record: LogRecord) -> str:
        data = {
            'timestamp': record.timestamp,
            'level': record.level.name,
            'type': record.log_type.name,
            'logger': record.logger_name,
            'message': record.message
        }
        if record.context:
            data['context'] = record.context
        if record.correlation_id:
            data['correlation_id'] = record.correlation_id
        if record.exchange:
            data['exchange'] = record.exchange
        if record.symbol:
            data['symbol'] = record.symbol

        # Unknown context values (enums, Decimals) fall back to str()
        return msgspec.json.encode(data, enc_hook=str).decode('utf-8')
