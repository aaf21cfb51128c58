"""Safe execution wrapper for the external chart conversion utilities.

The conversion pipeline drives GDAL (``ogrinfo``, ``ogr2ogr``) and
``tippecanoe`` as subprocesses. This module runs them with captured
output and turns non-zero exits, and missing executables, into
CommandError with the tool's stderr as the message.

Example:
    List the layers of an S-57 cell:
        >>> from charttiles.utils.commands import run_command, CommandError

        >>> try:
        ...     listing = run_command(["ogrinfo", "-ro", "-so", "US5MA1SK.000"])
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")
"""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable


class CommandError(RuntimeError):
    """Exception raised when an external command fails.

    Raised when the command exits with a non-zero status code, or cannot be
    started at all. The message is the command's stderr output.

    Attributes:
        command: The argument list that was executed.
        returncode: Exit status, None if the command never started.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode


def run_command(command: Iterable[str | pathlib.Path]) -> str:
    """Execute a command and raise on non-zero exit.

    Args:
        command: Iterable arguments to execute (e.g., ["ogr2ogr", "-f", ...]).

    Returns:
        The command's standard output.

    Raises:
        CommandError: if the command exits with a non-zero status code or
            the executable cannot be found. The exception message contains
            the stderr output from the command.

    Example:
        Package GeoJSON into an archive:
            >>> run_command(
            ...     ["tippecanoe", "-o", "out.mbtiles", "--force", "a.geojson"]
            ... )
    """
    args = [str(part) for part in command]
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise CommandError(f"Executable not found: {args[0]}", args) from exc

    if result.returncode != 0:
        raise CommandError(
            result.stderr.strip() or "Unknown command failure",
            args,
            result.returncode,
        )
    return result.stdout
