"""Built-in coding tools: shell execution and file read/write/edit.

Relative paths are resolved against the conversation's working
directory, which the registry injects through the ``cwd`` parameter.
"""

import asyncio
import logging
import os

from omo.tools import Tool, ToolRegistry, tool

logger = logging.getLogger(__name__)

BASH_TIMEOUT = 30.0


def _resolve(path: str, cwd: str | None) -> str:
    if os.path.isabs(path):
        return path
    return os.path.abspath(os.path.join(cwd or os.getcwd(), path))


@tool
async def bash(command: str, cwd: str | None = None):
    """Execute a bash command and return the output.

    Args:
        command: The bash command to execute
    """
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd or os.getcwd(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            executable="/bin/bash" if os.path.exists("/bin/bash") else None,
        )
    except OSError as e:
        return f"Error: {e}"

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(), timeout=BASH_TIMEOUT,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return f"Error: Command timed out after {BASH_TIMEOUT:g}s: {command}"

    out = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace")
    if proc.returncode != 0:
        logger.info(f"bash exited with {proc.returncode}: {command}")
        message = f"Error: Command failed with exit code {proc.returncode}: {command}"
        return message + (f"\n{err}" if err else "")
    output = out + (f"\nstderr: {err}" if err else "")
    return output or "(no output)"


@tool
async def read(path: str, cwd: str | None = None):
    """Read the contents of a file at the specified path.

    Args:
        path: The file path to read
    """
    resolved = _resolve(path, cwd)
    try:
        return await asyncio.to_thread(_read_text, resolved)
    except FileNotFoundError:
        return f"Error: File not found: {resolved}"


@tool
async def write(path: str, content: str, cwd: str | None = None):
    """Write content to a file. Creates parent directories if needed.

    Args:
        path: File path to write
        content: Content to write
    """
    resolved = _resolve(path, cwd)
    await asyncio.to_thread(_write_text, resolved, content)
    return f"Wrote {len(content)} bytes to {resolved}"


@tool
async def edit(path: str, search: str, replace: str, cwd: str | None = None):
    """Edit a file by finding and replacing text exactly.

    Args:
        path: File path
        search: Text to find
        replace: Replacement text
    """
    resolved = _resolve(path, cwd)
    content = await asyncio.to_thread(_read_text, resolved)
    if search not in content:
        return f"Error: Text not found in {resolved}"
    await asyncio.to_thread(
        _write_text, resolved, content.replace(search, replace, 1),
    )
    return f"Edited {resolved}"


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def _write_text(path: str, content: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


CODING_TOOLS: list[Tool] = [read, bash, write, edit]


def default_tools() -> ToolRegistry:
    """Registry holding the default read/bash/write/edit tools."""
    return ToolRegistry(CODING_TOOLS)
