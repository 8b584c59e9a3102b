"""Pydantic models for roam-organize."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field


class Node(BaseModel):
    """A node as recorded in the org-roam index."""

    id: str
    title: str
    file: Path
    level: int = 0  # 0 = the node is the whole file
    pos: int = 1
    tags: list[str] = Field(default_factory=list)  # In stored order


class TagAnchor(BaseModel):
    """Association of a tag with the node that aggregates it."""

    tag: str
    id: str


class Template(BaseModel):
    """A note creation template."""

    key: str
    description: str = ""
    directory: str = "fleeting"  # fleeting | permanent | moc | path relative to root
    filename: str = "{timestamp}-{slug}.org"
    head: str = ""
    tags: list[str] = Field(default_factory=list)


class SettingCheck(BaseModel):
    """Validation outcome for one configuration setting."""

    name: str
    kind: str
    value: Any = None
    kind_ok: bool
    exists: bool | None = None  # directory and file kinds only
    inside_root: bool | None = None  # directory kind only

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return self.kind_ok and self.exists is not False and self.inside_root is not False


class ValidationReport(BaseModel):
    """Per-setting validation report. Every setting is listed, failed or not."""

    root: Path | None = None
    checks: list[SettingCheck] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return all(check.ok for check in self.checks)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def text(self) -> str:
        lines = [f"Configuration root: {self.root}"]
        for check in self.checks:
            status = "ok" if check.ok else "FAILED"
            lines.append(f"{check.name} ({check.kind}) = {check.value!r}: {status}")
            parts = [f"kind: {_yes_no(check.kind_ok)}"]
            if check.exists is not None:
                parts.append(f"exists: {_yes_no(check.exists)}")
            if check.inside_root is not None:
                parts.append(f"inside root: {_yes_no(check.inside_root)}")
            lines.append("  " + ", ".join(parts))
        lines.append("Configuration is valid." if self.ok else "Configuration is INVALID.")
        return "\n".join(lines)


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


class OperationResult(BaseModel):
    """Outcome of a gated or status-only operation."""

    status: Literal["ok", "disabled", "error"] = "ok"
    message: str


class RelocationResult(BaseModel):
    """Outcome of moving a headline and its backing note."""

    node_id: str
    title: str
    old_path: Path
    new_path: Path
    moved: bool  # False when old and new paths were equal
    tags: list[str]  # Node tags after the source/target replacement
    tags_rewritten: bool  # Whether the #+filetags line was written
    source_file: Path
    target_file: Path
    headline_moved: bool = True  # False when the headline lives in the note it points at


class DeletionResult(BaseModel):
    """Outcome of deleting a headline and its backing note."""

    node_id: str
    title: str
    deleted_file: Path
    deleted_directory: Path | None = None
    source_file: Path


class BatchResult(BaseModel):
    """Outcome of a counter/backlink batch. Warnings mark partial failure."""

    counters: dict[str, int] = Field(default_factory=dict)  # property name -> count
    inserted: dict[str, list[str]] = Field(default_factory=dict)  # anchor -> node ids
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return not self.warnings

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message(self) -> str:
        links = sum(len(ids) for ids in self.inserted.values())
        summary = f"{len(self.counters)} counter(s) updated, {links} link(s) inserted"
        if self.ok:
            return f"Completed successfully: {summary}."
        return f"Completed with {len(self.warnings)} warning(s): {summary}."
