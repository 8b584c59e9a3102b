"""Relocation and deletion of headline entries and the notes they link to.

A headline such as ``** [[id:5f1c...][Zettel about caching]]`` in an inbox or
MOC file stands for a standalone note. Relocating it retags the note, moves
its file under the move target directory and moves the headline into the move
target file. Deleting it removes the note file (and its id-named directory
when that layout is in use) and the headline.

Resolution (headline, id link, node) happens before any mutation. Once the
filesystem is touched, errors propagate and nothing already done is undone.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .config import ConfigStore
from .errors import NoIdLinkError, UnknownNodeError
from .index import NodeIndex
from .models import DeletionResult, Node, RelocationResult
from .parser import Headline, OrgBuffer, extract_id_link
from .tags import replace_file_tag, replace_tag

log = logging.getLogger(__name__)


def resolve_headline(index: NodeIndex, file: Path, line: int) -> tuple[OrgBuffer, Headline, Node]:
    """Resolve the headline at a position to the node its id link names.

    Raises:
        NotAHeadlineError: If the line is not inside a headline.
        NoIdLinkError: If the headline title has no [[id:...]] link.
        UnknownNodeError: If the index has no node with that id.
    """
    buffer = OrgBuffer.load(file)
    headline = buffer.headline_at(line)

    node_id = extract_id_link(headline.title)
    if node_id is None:
        raise NoIdLinkError(
            f"Headline '{headline.title}' has no [[id:...]] link",
            details={"file": str(file), "line": headline.start + 1},
        )

    node = index.get_node(node_id)
    if node is None:
        raise UnknownNodeError(
            f"No node with id {node_id} in the index",
            details={"id": node_id, "suggestion": "Re-sync the org-roam database"},
        )
    return buffer, headline, node


def _target_path(store: ConfigStore, node: Node) -> Path:
    directory = store.path("move_target_directory")
    if store.flag("id_named_directories"):
        directory = directory / node.id
    if store.flag("id_named_files"):
        return directory / f"{node.id}{node.file.suffix}"
    return directory / node.file.name


def _same_file(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()


def relocate_headline(store: ConfigStore, index: NodeIndex, file: Path, line: int) -> RelocationResult:
    """Move the headline at file:line and its backing note to the permanent location."""
    buffer, headline, node = resolve_headline(index, file, line)
    source_tag = store.get("source_tag")
    target_tag = store.get("target_tag")
    # A headline inside the note itself travels with the note file
    in_note = _same_file(file, node.file)

    tags = replace_tag(node.tags, source_tag, target_tag)

    new_path = _target_path(store, node)
    new_path.parent.mkdir(parents=True, exist_ok=True)

    # Retag before the move so the rewrite targets the current path
    tags_rewritten = replace_file_tag(node.file, source_tag, target_tag)

    moved = not _same_file(node.file, new_path)
    if moved:
        node.file.replace(new_path)
        log.info("Moved %s -> %s", node.file, new_path)
    else:
        log.debug("%s already at its target location", node.file)

    target_file = store.path("move_target_file")
    if in_note:
        log.info("Headline lives in %s; left in the note", new_path)
    else:
        entry = buffer.cut(headline)
        if _same_file(file, target_file):
            buffer.append(entry)
        else:
            # Write the entry to its destination before removing it from the source
            target = OrgBuffer.load(target_file)
            target.append(entry)
            target.save()
        buffer.save()

    return RelocationResult(
        node_id=node.id,
        title=node.title,
        old_path=node.file,
        new_path=new_path,
        moved=moved,
        tags=tags,
        tags_rewritten=tags_rewritten,
        source_file=file,
        target_file=target_file,
        headline_moved=not in_note,
    )


def delete_headline(store: ConfigStore, index: NodeIndex, file: Path, line: int) -> DeletionResult:
    """Delete the headline at file:line together with its backing note.

    The note's id-named directory under the move target directory is removed
    too, but only when the note carries the target tag, id-named directories
    are enabled, and the directory exists.
    """
    buffer, headline, node = resolve_headline(index, file, line)
    in_note = _same_file(file, node.file)

    node.file.unlink()
    log.info("Deleted %s", node.file)

    deleted_directory: Path | None = None
    id_directory = store.path("move_target_directory") / node.id
    if (
        store.get("target_tag") in node.tags
        and store.flag("id_named_directories")
        and id_directory.is_dir()
    ):
        shutil.rmtree(id_directory)
        deleted_directory = id_directory
        log.info("Deleted directory %s", id_directory)

    # The headline went with the note file when it lived there
    if not in_note:
        buffer.cut(headline)
        buffer.save()

    return DeletionResult(
        node_id=node.id,
        title=node.title,
        deleted_file=node.file,
        deleted_directory=deleted_directory,
        source_file=file,
    )
