"""Shared test fixtures for the roam-organize test suite.

Design:
- tmp_kb: isolated knowledge base (directories, config file, org-roam-shaped
  SQLite index) with ROAM_ORGANIZE_CONFIG / ROAM_ORGANIZE_STATE_DIR pointed at it
- runner: CliRunner for command tests
- write_note: helper creating a file-level org-roam note
"""

import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from roam_organize.config import ConfigStore, load_config
from roam_organize.index import NodeIndex, encode


def pytest_configure(config: pytest.Config) -> None:
    # Logging is configured once per process; keep test output quiet.
    os.environ.setdefault("ROAM_ORGANIZE_LOG_LEVEL", "ERROR")


# ─────────────────────────────────────────────────────────────────────────────
# org-roam database
# ─────────────────────────────────────────────────────────────────────────────

# Subset of the org-roam v2 schema the organizer reads
ROAM_SCHEMA = """
CREATE TABLE files (file UNIQUE PRIMARY KEY, title, hash NOT NULL, atime NOT NULL, mtime NOT NULL);
CREATE TABLE nodes (id NOT NULL PRIMARY KEY, file NOT NULL, level NOT NULL, pos NOT NULL,
                    todo, priority, scheduled text, deadline text, title, properties, olp);
CREATE TABLE tags (node_id NOT NULL, tag);
CREATE TABLE links (pos NOT NULL, source NOT NULL, dest NOT NULL, type NOT NULL, properties NOT NULL);
CREATE TABLE citations (node_id NOT NULL, cite_key NOT NULL, pos NOT NULL, properties);
CREATE TABLE refs (node_id NOT NULL, ref NOT NULL, type NOT NULL);
"""


class RoamDB:
    """Writes rows the way org-roam stores them (emacsql-quoted strings)."""

    def __init__(self, path: Path) -> None:
        self.path = path
        conn = sqlite3.connect(path)
        try:
            conn.executescript(ROAM_SCHEMA)
        finally:
            conn.close()

    def _execute(self, query: str, params: tuple) -> None:
        conn = sqlite3.connect(self.path)
        try:
            conn.execute(query, params)
            conn.commit()
        finally:
            conn.close()

    def add_node(
        self,
        node_id: str,
        file: Path,
        title: str,
        tags: list[str] | tuple[str, ...] = (),
        level: int = 0,
        pos: int = 1,
    ) -> None:
        self._execute(
            "INSERT INTO nodes (id, file, level, pos, title) VALUES (?, ?, ?, ?, ?)",
            (encode(node_id), encode(str(file)), level, pos, encode(title)),
        )
        for tag in tags:
            self._execute("INSERT INTO tags (node_id, tag) VALUES (?, ?)", (encode(node_id), encode(tag)))

    def add_link(self, source: str, dest: str, kind: str = "id") -> None:
        self._execute(
            "INSERT INTO links (pos, source, dest, type, properties) VALUES (1, ?, ?, ?, '(:outline nil)')",
            (encode(source), encode(dest), encode(kind)),
        )

    def add_citation(self, node_id: str, cite_key: str) -> None:
        self._execute(
            "INSERT INTO citations (node_id, cite_key, pos) VALUES (?, ?, 1)",
            (encode(node_id), encode(cite_key)),
        )

    def add_ref(self, node_id: str, ref: str, kind: str = "cite") -> None:
        self._execute(
            "INSERT INTO refs (node_id, ref, type) VALUES (?, ?, ?)",
            (encode(node_id), encode(ref), encode(kind)),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge base
# ─────────────────────────────────────────────────────────────────────────────


def write_note(path: Path, node_id: str, title: str, tags: list[str] | None = None, body: str = "") -> Path:
    """Create a file-level org-roam note."""
    lines = [":PROPERTIES:", f":ID:       {node_id}", ":END:", f"#+title: {title}"]
    if tags is not None:
        lines.append(f"#+filetags: :{':'.join(tags)}:" if tags else "#+filetags:")
    if body:
        lines.append(body.rstrip("\n"))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@dataclass
class KB:
    root: Path
    config_path: Path
    db: RoamDB
    state_dir: Path

    def configure(self, **settings) -> None:
        """Merge settings into the config file."""
        data = yaml.safe_load(self.config_path.read_text()) or {}
        data.update(settings)
        self.config_path.write_text(yaml.safe_dump(data))

    def store(self) -> ConfigStore:
        return load_config(self.config_path)

    def index(self) -> NodeIndex:
        return NodeIndex(self.db.path)


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_kb(tmp_path: Path, monkeypatch) -> KB:
    """Create an isolated knowledge base.

    Layout:
        kb/.roam-organize.yaml
        kb/fleeting/  kb/permanent/  kb/moc/
        kb/index.org  kb/moc/permanent.org  kb/inbox.org
        org-roam.db  (outside the root, like ~/.emacs.d/org-roam.db)
    """
    root = tmp_path / "kb"
    for name in ("fleeting", "permanent", "moc"):
        (root / name).mkdir(parents=True)
    (root / "index.org").write_text("#+title: Index\n", encoding="utf-8")
    (root / "moc" / "permanent.org").write_text("#+title: Permanent notes\n", encoding="utf-8")
    (root / "inbox.org").write_text("#+title: Inbox\n", encoding="utf-8")

    db = RoamDB(tmp_path / "org-roam.db")

    config_path = root / ".roam-organize.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "fleeting_directory": "fleeting",
                "permanent_directory": "permanent",
                "moc_directory": "moc",
                "index_file": "index.org",
                "move_target_directory": "permanent",
                "move_target_file": "moc/permanent.org",
                "source_tag": "fleeting",
                "target_tag": "permanent",
                "id_named_directories": False,
                "id_named_files": False,
                "database_file": str(db.path),
            }
        )
    )

    state_dir = tmp_path / "state"
    monkeypatch.setenv("ROAM_ORGANIZE_CONFIG", str(config_path))
    monkeypatch.setenv("ROAM_ORGANIZE_STATE_DIR", str(state_dir))

    return KB(root=root, config_path=config_path, db=db, state_dir=state_dir)


@pytest.fixture
def enabled_kb(tmp_kb: KB, monkeypatch) -> KB:
    """tmp_kb with the organizing mode switched on (cwd inside the root)."""
    from roam_organize.mode import ModeController

    monkeypatch.chdir(tmp_kb.root)
    controller = ModeController(tmp_kb.store(), tmp_kb.index())
    result = controller.enable()
    assert result.status == "ok", result.message
    return tmp_kb
