"""Actions on a selected document: open it, open its folder, copy its path."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import sys
from typing import Protocol

from ..commands import CommandFacade
from .models import ResultItem

logger = logging.getLogger(__name__)


class OSBridge(Protocol):
    """Operating-system effects the client needs."""

    async def open_path(self, path: str) -> None:
        """Open a file or folder with the default application."""

    async def copy_text(self, text: str) -> None:
        """Place text on the clipboard."""


def _opener_command() -> list[str]:
    if sys.platform == "darwin":
        return ["open"]
    if sys.platform.startswith("win"):
        return ["cmd", "/c", "start", ""]
    return ["xdg-open"]


def _clipboard_command() -> list[str] | None:
    if sys.platform == "darwin":
        return ["pbcopy"]
    if sys.platform.startswith("win"):
        return ["clip"]
    for candidate in (["wl-copy"], ["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]):
        if shutil.which(candidate[0]):
            return candidate
    return None


class SystemBridge:
    """OSBridge backed by the platform opener and clipboard commands."""

    async def open_path(self, path: str) -> None:
        command = [*_opener_command(), path]
        await asyncio.to_thread(
            subprocess.run,
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
        )

    async def copy_text(self, text: str) -> None:
        command = _clipboard_command()
        if command is None:
            raise RuntimeError("No clipboard command available")
        await asyncio.to_thread(
            subprocess.run,
            command,
            input=text,
            text=True,
            check=True,
        )


class DocumentActions:
    """Runs document actions and logs their failures."""

    def __init__(self, commands: CommandFacade, bridge: OSBridge) -> None:
        self.commands = commands
        self.bridge = bridge

    async def open_document(self, item: ResultItem) -> bool:
        try:
            await self.bridge.open_path(item.path)
        except (OSError, subprocess.CalledProcessError) as err:
            logger.warning(f"Failed to open {item.path}: {err}")
            return False
        return True

    async def open_containing_folder(self, item: ResultItem) -> bool:
        try:
            folder = await self.commands.get_containing_folder(item.path)
            await self.bridge.open_path(folder)
        except Exception as err:
            logger.warning(f"Failed to open folder of {item.path}: {err}")
            return False
        return True

    async def copy_path(self, item: ResultItem) -> bool:
        try:
            await self.bridge.copy_text(item.path)
        except (OSError, RuntimeError, subprocess.CalledProcessError) as err:
            logger.warning(f"Failed to copy {item.path}: {err}")
            return False
        return True
