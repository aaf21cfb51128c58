"""Pre-flight sanity checks for S-57 source cells.

These checks are deliberately shallow: they catch empty or truncated files
and files that do not carry an ISO 8211 leader before an expensive
conversion run, without parsing the cell.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable

HEADER_SIZE = 24
MIN_EXPECTED_SIZE = 1024
LEADER_MARKERS = (b"3LE1", b"2LE1")


@dataclasses.dataclass
class SourceCheck:
    """Result of checking one source file."""

    path: pathlib.Path
    valid: bool = True
    size: int = 0
    errors: list[str] = dataclasses.field(default_factory=list)
    warnings: list[str] = dataclasses.field(default_factory=list)

    def fail(self, message: str) -> None:
        self.valid = False
        self.errors.append(message)

    def to_dict(self) -> dict[str, object]:
        return {
            "file": str(self.path),
            "valid": self.valid,
            "size": self.size,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def validate_source(path: pathlib.Path) -> SourceCheck:
    """Check one S-57 cell for obvious damage.

    Args:
        path: Source file to inspect.

    Returns:
        A SourceCheck; ``valid`` is False when any error was recorded.
    """
    check = SourceCheck(path=path)
    try:
        check.size = path.stat().st_size
        with path.open("rb") as handle:
            header = handle.read(HEADER_SIZE)
    except OSError as exc:
        check.fail(f"cannot read file: {exc}")
        return check

    if check.size == 0:
        check.fail("file is empty")
        return check
    if check.size < MIN_EXPECTED_SIZE:
        check.warnings.append("file is unusually small")
    if len(header) < HEADER_SIZE:
        check.fail("file header is incomplete")
        return check
    if not any(marker in header for marker in LEADER_MARKERS):
        check.warnings.append("no ISO 8211 leader marker (3LE1/2LE1) found")
    return check


def validate_sources(paths: Iterable[pathlib.Path]) -> list[SourceCheck]:
    return [validate_source(path) for path in paths]
