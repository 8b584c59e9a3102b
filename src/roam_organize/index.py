"""Read-only client for the org-roam node index.

The index is an org-roam v2 SQLite database (tables ``nodes``, ``tags``,
``links``, ``citations``, ``refs``). It is owned by the note system and
re-derived from the org files; this module never writes to it. After editing
files, callers re-sync the index (``org-roam-db-sync``) before expecting the
edits to show up in query results.

org-roam stores text columns in printed Lisp form, so the node id ``abc`` is
the column value ``"abc"``. Parameters are encoded and results decoded here;
integer columns (``level``, ``pos``) are stored as plain integers.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .errors import IndexUnavailableError
from .models import Node

log = logging.getLogger(__name__)

# SQLite's default limit on bound parameters is 999
_PARAM_CHUNK = 900


def _chunked(items: list[str], size: int) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _unique(values: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(values))


def encode(value: str) -> str:
    """Encode a string the way emacsql prints it (``abc`` -> ``"abc"``)."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def decode(value: object) -> str:
    """Decode an emacsql-printed string column; other values pass through str()."""
    if not isinstance(value, str):
        return str(value)
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        out: list[str] = []
        chars = iter(value[1:-1])
        for char in chars:
            if char == "\\":
                out.append(next(chars, ""))
            else:
                out.append(char)
        return "".join(out)
    return value


class NodeIndex:
    """Query facade over the org-roam database."""

    def __init__(self, db_path: Path) -> None:
        self._path = db_path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        if not self._path.is_file():
            raise IndexUnavailableError(
                f"Node index not found: {self._path}",
                details={"suggestion": "Set database_file to your org-roam.db"},
            )
        try:
            return sqlite3.connect(f"{self._path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise IndexUnavailableError(f"Cannot open node index {self._path}: {e}") from e

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Open a read-only connection; query failures surface as IndexUnavailableError."""
        conn = self._connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise IndexUnavailableError(
                f"Cannot query node index {self._path}: {e}",
                details={"suggestion": "Check that database_file is an org-roam v2 database"},
            ) from e
        finally:
            conn.close()

    def _grouped(self, query: str, keys: Sequence[str], *extra: str) -> dict[str, list[str]]:
        """Run a (key, value) query for keys in chunks; every key appears in the result.

        The query must contain one ``{placeholders}`` slot for the key list;
        ``extra`` values are bound after the keys.
        """
        wanted = _unique(keys)
        if not wanted:
            return {}

        rows: list[tuple[str, str]] = []
        with self._session() as conn:
            for batch in _chunked(wanted, _PARAM_CHUNK):
                placeholders = ",".join("?" for _ in batch)
                params = [encode(key) for key in batch] + [encode(value) for value in extra]
                rows.extend(conn.execute(query.format(placeholders=placeholders), params).fetchall())

        grouped: dict[str, list[str]] = {key: [] for key in wanted}
        for key, value in rows:
            values = grouped[decode(key)]
            value = decode(value)
            if value not in values:
                values.append(value)
        return grouped

    # ------------------------------------------------------------------
    # Aggregate queries
    # ------------------------------------------------------------------

    def count_level0_by_tag(self, tags: Sequence[str]) -> dict[str, int]:
        """Count file-level nodes per tag. Tags without nodes map to 0."""
        wanted = _unique(tags)
        if not wanted:
            return {}

        counts: dict[str, int] = {}
        with self._session() as conn:
            for batch in _chunked(wanted, _PARAM_CHUNK):
                placeholders = ",".join("?" for _ in batch)
                rows = conn.execute(
                    "SELECT tags.tag, COUNT(DISTINCT nodes.id) FROM tags "
                    "JOIN nodes ON tags.node_id = nodes.id "
                    f"WHERE nodes.level = 0 AND tags.tag IN ({placeholders}) "
                    "GROUP BY tags.tag",
                    [encode(tag) for tag in batch],
                ).fetchall()
                counts.update({decode(tag): int(count) for tag, count in rows})
        return {tag: counts.get(tag, 0) for tag in wanted}

    def level0_ids_by_tag(self, tags: Sequence[str]) -> dict[str, list[str]]:
        """File-level node ids per tag."""
        return self._grouped(
            "SELECT tags.tag, nodes.id FROM tags "
            "JOIN nodes ON tags.node_id = nodes.id "
            "WHERE nodes.level = 0 AND tags.tag IN ({placeholders})",
            tags,
        )

    def level0_ids_by_citekey(self, citekeys: Sequence[str]) -> dict[str, list[str]]:
        """File-level node ids per citation key they cite."""
        return self._grouped(
            "SELECT citations.cite_key, nodes.id FROM citations "
            "JOIN nodes ON citations.node_id = nodes.id "
            "WHERE nodes.level = 0 AND citations.cite_key IN ({placeholders})",
            citekeys,
        )

    def existing_link_targets(
        self,
        source_ids: Sequence[str],
        kinds: Sequence[str] = ("id",),
    ) -> dict[str, list[str]]:
        """Link destinations per source, limited to file-level nodes and the given kinds."""
        if not kinds:
            return {source: [] for source in _unique(source_ids)}
        kind_slots = ",".join("?" for _ in kinds)
        return self._grouped(
            "SELECT links.source, links.dest FROM links "
            "JOIN nodes ON links.dest = nodes.id "
            "WHERE nodes.level = 0 AND links.source IN ({placeholders}) "
            f"AND links.type IN ({kind_slots})",
            source_ids,
            *kinds,
        )

    def citekey_anchors(self) -> list[tuple[str, str]]:
        """(citekey, node_id) pairs for notes that are the reference for a citekey."""
        with self._session() as conn:
            rows = conn.execute(
                "SELECT ref, node_id FROM refs WHERE type = ? ORDER BY ref",
                (encode("cite"),),
            ).fetchall()
        return [(decode(ref), decode(node_id)) for ref, node_id in rows]

    # ------------------------------------------------------------------
    # Single node lookup
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> Node | None:
        """Look up a node by id, with its tags in stored order."""
        with self._session() as conn:
            row = conn.execute(
                "SELECT id, file, level, pos, title FROM nodes WHERE id = ?",
                (encode(node_id),),
            ).fetchone()
            if row is None:
                return None
            tag_rows = conn.execute(
                "SELECT tag FROM tags WHERE node_id = ? ORDER BY rowid",
                (encode(node_id),),
            ).fetchall()

        node_key, file, level, pos, title = row
        tags = list(dict.fromkeys(decode(tag) for (tag,) in tag_rows))
        return Node(
            id=decode(node_key),
            title=decode(title) if title is not None else "",
            file=Path(decode(file)),
            level=int(level),
            pos=int(pos),
            tags=tags,
        )
