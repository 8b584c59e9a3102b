"""Creation of new notes from registered templates."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime
from pathlib import Path

from .config import ConfigStore
from .errors import ConfigurationError, NoteExistsError, TemplateNotFoundError
from .models import Template
from .parser import format_filetags

log = logging.getLogger(__name__)

# Placeholders a template filename may use
FILENAME_FIELDS = ("slug", "id", "timestamp")

# Template directories that name a configured directory setting
_NAMED_DIRECTORIES = {
    "fleeting": "fleeting_directory",
    "permanent": "permanent_directory",
    "moc": "moc_directory",
}


def slugify(title: str) -> str:
    """Convert title to a filename-friendly slug (lowercase, hyphens, alphanumeric only)."""
    slug = title.lower()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def get_template(templates: dict[str, Template], key: str) -> Template:
    try:
        return templates[key]
    except KeyError:
        available = ", ".join(sorted(templates)) or "none"
        raise TemplateNotFoundError(
            f"Unknown template '{key}'",
            details={"suggestion": f"Registered templates: {available}"},
        ) from None


def render_note(node_id: str, title: str, template: Template) -> str:
    """Render the text of a new note: ID drawer, title, filetags, then the head."""
    lines = [":PROPERTIES:", f":ID:       {node_id}", ":END:", f"#+title: {title}"]
    if template.tags:
        lines.append(f"#+filetags: {format_filetags(template.tags)}")
    if template.head:
        lines.append(template.head.replace("{title}", title).rstrip("\n"))
    return "\n".join(lines) + "\n"


def create_note(
    store: ConfigStore,
    template: Template,
    title: str,
    now: datetime | None = None,
) -> tuple[str, Path]:
    """Create a note file from a template.

    Returns:
        Tuple of (new node id, created file path).

    Raises:
        NoteExistsError: If the rendered filename already exists.
    """
    node_id = str(uuid.uuid4())
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")

    setting = _NAMED_DIRECTORIES.get(template.directory)
    directory = store.path(setting) if setting else store.root / template.directory
    try:
        filename = template.filename.format(slug=slugify(title) or "untitled", id=node_id, timestamp=stamp)
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(
            f"Template '{template.key}' has an invalid filename pattern '{template.filename}': {e}",
            details={"suggestion": f"Supported fields: {', '.join('{' + f + '}' for f in FILENAME_FIELDS)}"},
        ) from e
    path = directory / filename

    if path.exists():
        raise NoteExistsError(f"Note already exists: {path}", details={"path": str(path)})

    directory.mkdir(parents=True, exist_ok=True)
    path.write_text(render_note(node_id, title, template), encoding="utf-8")
    log.info("Created %s from template '%s'", path, template.key)
    return node_id, path
