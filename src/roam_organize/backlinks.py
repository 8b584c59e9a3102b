"""Backlink completion and per-tag counters on anchor notes.

An anchor is the node that aggregates a tag (configured in ``tag_anchors``)
or a citation key (the literature note whose ROAM_REFS holds the key). Every
file-level node carrying the tag, or citing the key, should be linked from its
anchor. ``missing_links`` computes which links are absent according to the
index and ``insert_link_entries`` appends one headline per missing link to
the anchor's file.

Batches never stop at the first bad anchor: problems are collected as
warnings on the returned BatchResult.
"""

from __future__ import annotations

import logging
from typing import Literal, Sequence

from .config import ConfigStore
from .index import NodeIndex
from .models import BatchResult
from .parser import OrgBuffer, extract_id_links, format_id_link

log = logging.getLogger(__name__)

Grouping = Literal["tag", "citekey"]

# Link types that count as "already linked" for each grouping. Completion
# writes id links, so the citation variant must recognise them as well.
TAG_LINK_KINDS = ("id",)
CITEKEY_LINK_KINDS = ("id", "cite")


def counter_property(tag: str) -> str:
    """Name of the property holding the node count for a tag."""
    return f"NUM_OF_{tag.upper()}_NODES"


def missing_links(
    index: NodeIndex,
    pairs: Sequence[tuple[str, str]],
    grouping: Grouping = "tag",
    kinds: Sequence[str] = TAG_LINK_KINDS,
) -> dict[str, list[str]]:
    """Compute, per anchor, the grouped nodes the anchor does not link to yet.

    Args:
        index: Node index to query.
        pairs: (grouping key, anchor id) pairs.
        grouping: Whether keys are tags or citation keys.
        kinds: Link types that count as an existing link.

    Returns:
        Anchor id -> sorted missing node ids. Every anchor is present, with an
        empty list when nothing is missing. An anchor listed under several keys
        gets the union of its missing ids. The anchor itself is never reported.
    """
    if not pairs:
        return {}

    keys = [key for key, _ in pairs]
    if grouping == "tag":
        members = index.level0_ids_by_tag(keys)
    elif grouping == "citekey":
        members = index.level0_ids_by_citekey(keys)
    else:
        raise ValueError(f"Unknown grouping: {grouping}")

    linked = index.existing_link_targets([anchor for _, anchor in pairs], kinds)

    missing: dict[str, set[str]] = {}
    for key, anchor in pairs:
        absent = set(members.get(key, [])) - set(linked.get(anchor, [])) - {anchor}
        missing.setdefault(anchor, set()).update(absent)
    return {anchor: sorted(ids) for anchor, ids in missing.items()}


def insert_link_entries(
    index: NodeIndex,
    anchor_id: str,
    missing_ids: Sequence[str],
) -> tuple[list[str], list[str]]:
    """Append ``* [[id:ID][TITLE]]`` to the anchor's file for each missing id.

    Ids already linked in the file text are skipped, so running this again
    before the index re-syncs adds nothing twice.

    Returns:
        Tuple of (inserted node ids, warnings).
    """
    if not missing_ids:
        return [], []

    anchor = index.get_node(anchor_id)
    if anchor is None:
        message = f"Anchor {anchor_id} not found in the index; skipped {len(missing_ids)} link(s)"
        log.warning(message)
        return [], [message]
    if not anchor.file.is_file():
        message = f"Anchor file {anchor.file} does not exist; skipped {len(missing_ids)} link(s)"
        log.warning(message)
        return [], [message]

    buffer = OrgBuffer.load(anchor.file)
    present = set(extract_id_links(buffer.text))
    inserted: list[str] = []
    warnings: list[str] = []

    for node_id in missing_ids:
        if node_id in present:
            log.debug("%s already links to %s", anchor.file, node_id)
            continue
        target = index.get_node(node_id)
        if target is None:
            message = f"Node {node_id} not found in the index; no link added to {anchor.title}"
            log.warning(message)
            warnings.append(message)
            continue
        buffer.append(f"* {format_id_link(target.id, target.title)}\n")
        present.add(node_id)
        inserted.append(node_id)

    if buffer.save():
        log.info("Added %d link(s) to %s", len(inserted), anchor.file)
    return inserted, warnings


def _insert_all(index: NodeIndex, missing: dict[str, list[str]], result: BatchResult) -> None:
    for anchor_id, ids in missing.items():
        inserted, warnings = insert_link_entries(index, anchor_id, ids)
        if inserted:
            result.inserted[anchor_id] = inserted
        result.warnings.extend(warnings)


def update_mocs(store: ConfigStore, index: NodeIndex) -> BatchResult:
    """Refresh per-tag node counters on each anchor and complete its backlinks."""
    anchors = store.tag_anchors
    result = BatchResult()
    if not anchors:
        log.info("No tag_anchors configured; nothing to update")
        return result

    counts = index.count_level0_by_tag([anchor.tag for anchor in anchors])
    missing = missing_links(index, [(anchor.tag, anchor.id) for anchor in anchors], "tag", TAG_LINK_KINDS)

    for anchor in anchors:
        name = counter_property(anchor.tag)
        count = counts.get(anchor.tag)
        node = index.get_node(anchor.id)
        if node is None or count is None:
            message = f"Anchor {anchor.id} for tag '{anchor.tag}' could not be resolved"
            log.warning(message)
            result.warnings.append(message)
            continue

        buffer = OrgBuffer.load(node.file)
        if not buffer.set_property(anchor.id, name, str(count)):
            message = f"No entry with :ID: {anchor.id} in {node.file}"
            log.warning(message)
            result.warnings.append(message)
            continue
        buffer.save()
        result.counters[name] = count

    _insert_all(index, missing, result)
    log.info(result.message)
    return result


def complete_ref_backlinks(index: NodeIndex) -> BatchResult:
    """Link every literature note to the file-level nodes citing its key."""
    result = BatchResult()
    pairs = index.citekey_anchors()
    if not pairs:
        log.info("No literature notes with cite refs in the index")
        return result

    missing = missing_links(index, pairs, "citekey", CITEKEY_LINK_KINDS)
    _insert_all(index, missing, result)
    log.info(result.message)
    return result
