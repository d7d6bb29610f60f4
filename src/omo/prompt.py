"""Instruction loading for each request round.

The runner calls ``load_instructions(cwd)`` once per round and treats the
result as an opaque string.  The default loader reads identity and memory
documents through a :class:`Storage` backend, seeding today's and
yesterday's daily logs from a template when they are missing.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import os
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS = "You are OMO, a helpful AI coding assistant."
BOOTSTRAP_FILE = "BOOTSTRAP.md"
IDENTITY_FILES = ("IDENTITY.md", "SOUL.md", "USER.md", "AGENTS.md")
LONG_TERM_MEMORY_FILE = "MEMORY.md"
MEMORY_DIR = "memory"
SECTION_SEPARATOR = "\n\n---\n\n"


def daily_log_template(date: datetime.date) -> str:
    return (
        f"# Daily Log - {date.isoformat()}\n\n"
        "- **Summary**: \n"
        "- **Top Priorities**:\n"
        "  - [ ] \n"
        "  - [ ] \n"
        "- **Accomplishments**:\n"
        "  - \n"
        "- **Decisions Made**:\n"
        "  - \n"
        "- **Open Threads / Follow-ups**:\n"
        "  - \n"
        "- **Notes**:\n"
        "  - \n"
    )


def daily_log_path(date: datetime.date) -> str:
    return f"{MEMORY_DIR}/{date.isoformat()}.md"


@runtime_checkable
class InstructionsLoader(Protocol):
    async def load_instructions(self, cwd: str) -> str:
        ...


@runtime_checkable
class Storage(Protocol):
    """Key/value document store addressed by relative path."""

    async def read(self, path: str) -> str | None:
        ...

    async def write(self, path: str, content: str) -> None:
        ...

    async def list(self, prefix: str) -> list[str]:
        ...

    async def exists(self, path: str) -> bool:
        ...

    async def delete(self, path: str) -> None:
        ...


class FilesystemStorage:
    """:class:`Storage` over a local directory."""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir
        os.makedirs(base_dir, exist_ok=True)

    def _resolve(self, path: str) -> str:
        return os.path.join(self.base_dir, path)

    async def read(self, path: str) -> str | None:
        try:
            return await asyncio.to_thread(self._read, self._resolve(path))
        except FileNotFoundError:
            return None

    async def write(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._write, self._resolve(path), content)

    async def list(self, prefix: str) -> list[str]:
        full_path = self._resolve(prefix)
        try:
            entries = await asyncio.to_thread(os.listdir, full_path)
        except FileNotFoundError:
            return []
        return sorted(
            os.path.join(prefix, name) for name in entries
            if os.path.isfile(os.path.join(full_path, name))
        )

    async def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    async def delete(self, path: str) -> None:
        try:
            os.unlink(self._resolve(path))
        except FileNotFoundError:
            pass

    @staticmethod
    def _read(path: str) -> str:
        with open(path, encoding="utf-8") as f:
            return f.read()

    @staticmethod
    def _write(path: str, content: str) -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)


class StaticInstructions:
    """Always returns the same instructions string."""

    def __init__(self, text: str = DEFAULT_INSTRUCTIONS):
        self.text = text

    async def load_instructions(self, cwd: str) -> str:
        return self.text


class StorageInstructionsLoader:
    """Assembles instructions from identity and memory documents.

    A ``BOOTSTRAP.md`` document, when present, replaces everything else.

    Args:
        storage: Backend holding the documents.
        today: Callable returning the current date; injectable for tests.
    """

    def __init__(self, storage: Storage, today=datetime.date.today):
        self.storage = storage
        self.today = today

    async def ensure_memory_files(self) -> list[str]:
        """Create missing daily logs and long-term memory; return their paths."""
        today = self.today()
        yesterday = today - datetime.timedelta(days=1)
        paths = []
        for date in (today, yesterday):
            path = daily_log_path(date)
            if not await self.storage.exists(path):
                logger.debug(f"Seeding daily log {path}")
                await self.storage.write(path, daily_log_template(date))
            paths.append(path)
        if not await self.storage.exists(LONG_TERM_MEMORY_FILE):
            await self.storage.write(LONG_TERM_MEMORY_FILE, "")
        paths.append(LONG_TERM_MEMORY_FILE)
        return paths

    async def load_instructions(self, cwd: str) -> str:
        bootstrap = await self.storage.read(BOOTSTRAP_FILE)
        if bootstrap is not None:
            return bootstrap

        parts = []
        for name in IDENTITY_FILES:
            content = await self.storage.read(name)
            if content:
                parts.append(content)

        try:
            memory_paths = await self.ensure_memory_files()
        except OSError as e:
            logger.warning(f"Could not prepare memory files: {e}")
            memory_paths = []
        for path in memory_paths:
            content = await self.storage.read(path)
            if content:
                parts.append(content)

        return SECTION_SEPARATOR.join(parts) if parts else DEFAULT_INSTRUCTIONS


class FileInstructionsLoader:
    """Loads instructions from documents in the working directory itself."""

    def __init__(self, today=datetime.date.today):
        self.today = today

    async def load_instructions(self, cwd: str) -> str:
        loader = StorageInstructionsLoader(FilesystemStorage(cwd), today=self.today)
        return await loader.load_instructions(cwd)
