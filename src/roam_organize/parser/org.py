"""In-memory editing of org files.

OrgBuffer holds a file's lines and supports the few structural edits the
organizer needs: locating the headline around a line, cutting a headline
subtree, appending entries, rewriting the #+filetags line and setting
properties in an entry's property drawer. Nothing touches disk until save(),
and save() only writes when the text changed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..errors import NotAHeadlineError

log = logging.getLogger(__name__)

HEADLINE_PATTERN = re.compile(r"^(\*+)[ \t]+(.*?)[ \t]*$")
FILETAGS_PATTERN = re.compile(r"^#\+filetags:[ \t]*(.*?)[ \t]*$", re.IGNORECASE)
DRAWER_START_PATTERN = re.compile(r"^[ \t]*:PROPERTIES:[ \t]*$", re.IGNORECASE)
DRAWER_END_PATTERN = re.compile(r"^[ \t]*:END:[ \t]*$", re.IGNORECASE)
PROPERTY_PATTERN = re.compile(r"^[ \t]*:([^:\s]+):(?:[ \t]+(.*?))?[ \t]*$")


def parse_filetags(value: str) -> list[str]:
    """Split a colon-delimited tag string (``:a:b:``) into tokens."""
    return [token.strip() for token in value.split(":") if token.strip()]


def format_filetags(tags: list[str]) -> str:
    return f":{':'.join(tags)}:" if tags else ""


def _line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


@dataclass(frozen=True)
class Headline:
    """A headline and the extent of its subtree (0-based, end exclusive)."""

    start: int
    end: int
    level: int
    title: str


class OrgBuffer:
    """Lines of one org file, edited in memory and saved explicitly."""

    def __init__(self, path: Path, text: str = "") -> None:
        self.path = path
        self._saved_text = text
        self.lines: list[str] = text.splitlines(keepends=True)

    @classmethod
    def load(cls, path: Path) -> OrgBuffer:
        """Read a file into a buffer, keeping its line endings. A missing file yields an empty buffer."""
        if not path.exists():
            return cls(path)
        with path.open(encoding="utf-8", newline="") as f:
            return cls(path, f.read())

    @property
    def text(self) -> str:
        return "".join(self.lines)

    @property
    def modified(self) -> bool:
        return self.text != self._saved_text

    def save(self) -> bool:
        """Write the buffer if it changed since load or the last save.

        Returns:
            True if the file was written.
        """
        if not self.modified:
            return False
        text = self.text
        self.path.write_text(text, encoding="utf-8", newline="")
        self._saved_text = text
        log.debug("Saved %s", self.path)
        return True

    # ------------------------------------------------------------------
    # Headlines
    # ------------------------------------------------------------------

    def _level(self, index: int) -> int | None:
        match = HEADLINE_PATTERN.match(self.lines[index].rstrip("\r\n"))
        return len(match.group(1)) if match else None

    def _subtree(self, start: int) -> Headline:
        match = HEADLINE_PATTERN.match(self.lines[start].rstrip("\r\n"))
        assert match is not None
        level = len(match.group(1))
        end = start + 1
        while end < len(self.lines):
            other = self._level(end)
            if other is not None and other <= level:
                break
            end += 1
        return Headline(start=start, end=end, level=level, title=match.group(2))

    def headlines(self) -> Iterator[Headline]:
        for index in range(len(self.lines)):
            if self._level(index) is not None:
                yield self._subtree(index)

    def headline_at(self, line: int) -> Headline:
        """Return the headline whose entry contains the 1-based line.

        That is the line itself when it is a headline, else the nearest
        headline above it.

        Raises:
            NotAHeadlineError: If the line lies before the first headline or
                outside the file.
        """
        if line < 1 or line > len(self.lines):
            raise NotAHeadlineError(
                f"Line {line} is outside {self.path} ({len(self.lines)} lines)",
                details={"file": str(self.path), "line": line},
            )
        for index in range(line - 1, -1, -1):
            if self._level(index) is not None:
                return self._subtree(index)
        raise NotAHeadlineError(
            f"Line {line} of {self.path} is not inside a headline",
            details={"file": str(self.path), "line": line},
        )

    def cut(self, headline: Headline) -> str:
        """Remove a headline and all of its descendants; return the removed text."""
        removed = self.lines[headline.start : headline.end]
        del self.lines[headline.start : headline.end]
        return "".join(removed)

    def append(self, text: str) -> None:
        """Append text at the end of the buffer, on its own line(s)."""
        if not text:
            return
        if self.lines and not _line_ending(self.lines[-1]):
            self.lines[-1] += "\n"
        if not text.endswith("\n"):
            text += "\n"
        self.lines.extend(text.splitlines(keepends=True))

    # ------------------------------------------------------------------
    # #+filetags
    # ------------------------------------------------------------------

    def _filetags_index(self) -> int | None:
        for index, line in enumerate(self.lines):
            if FILETAGS_PATTERN.match(line.rstrip("\r\n")):
                return index
        return None

    def filetags(self) -> list[str] | None:
        """Tags on the #+filetags line, or None when the file has no such line."""
        index = self._filetags_index()
        if index is None:
            return None
        match = FILETAGS_PATTERN.match(self.lines[index].rstrip("\r\n"))
        assert match is not None
        return parse_filetags(match.group(1))

    def set_filetags(self, tags: list[str]) -> bool:
        """Rewrite the #+filetags line, keeping its keyword spelling.

        Returns:
            False when the file has no #+filetags line (nothing is added).
        """
        index = self._filetags_index()
        if index is None:
            return False
        line = self.lines[index]
        keyword = line.split(":", 1)[0]  # "#+filetags" in whatever case it was written
        value = format_filetags(tags)
        rendered = f"{keyword}: {value}" if value else f"{keyword}:"
        self.lines[index] = rendered + (_line_ending(line) or "\n")
        return True

    # ------------------------------------------------------------------
    # Property drawers
    # ------------------------------------------------------------------

    def _drawers(self) -> Iterator[tuple[int, int]]:
        """Yield (start, end) line indexes of each :PROPERTIES: ... :END: drawer."""
        index = 0
        while index < len(self.lines):
            if DRAWER_START_PATTERN.match(self.lines[index].rstrip("\r\n")):
                for end in range(index + 1, len(self.lines)):
                    if DRAWER_END_PATTERN.match(self.lines[end].rstrip("\r\n")):
                        yield index, end
                        index = end
                        break
                    if HEADLINE_PATTERN.match(self.lines[end].rstrip("\r\n")):
                        break  # Unterminated drawer
            index += 1

    def _property_in(self, drawer: tuple[int, int], name: str) -> tuple[int, str] | None:
        start, end = drawer
        for index in range(start + 1, end):
            match = PROPERTY_PATTERN.match(self.lines[index].rstrip("\r\n"))
            if match and match.group(1).upper() == name.upper():
                return index, match.group(2) or ""
        return None

    def find_drawer(self, node_id: str) -> tuple[int, int] | None:
        """Locate the property drawer declaring ``:ID: node_id``."""
        for drawer in self._drawers():
            found = self._property_in(drawer, "ID")
            if found and found[1] == node_id:
                return drawer
        return None

    def get_property(self, node_id: str, name: str) -> str | None:
        drawer = self.find_drawer(node_id)
        if drawer is None:
            return None
        found = self._property_in(drawer, name)
        return found[1] if found else None

    def set_property(self, node_id: str, name: str, value: str) -> bool:
        """Set a property on the entry whose drawer declares ``:ID: node_id``.

        Returns:
            False if no entry with that id exists in this buffer.
        """
        drawer = self.find_drawer(node_id)
        if drawer is None:
            return False
        start, end = drawer
        found = self._property_in(drawer, name)
        indent = re.match(r"^[ \t]*", self.lines[start]).group(0)  # type: ignore[union-attr]
        rendered = f"{indent}:{name}: {value}" + (_line_ending(self.lines[start]) or "\n")
        if found is not None:
            index, _ = found
            self.lines[index] = rendered
        else:
            self.lines.insert(end, rendered)
        return True
