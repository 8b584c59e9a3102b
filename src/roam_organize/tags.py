"""Tag replacement on node tag lists and #+filetags lines."""

from __future__ import annotations

import logging
from pathlib import Path

from .parser import OrgBuffer

log = logging.getLogger(__name__)


def replace_tag(tags: list[str], source_tag: str, target_tag: str) -> list[str]:
    """Replace source_tag with target_tag, keeping every other tag in place.

    The target takes the position of the first source occurrence and is never
    duplicated. Tags without the source tag come back unchanged.

    Examples:
        ["idea", "draft"], "idea" -> "note"  =>  ["note", "draft"]
        ["draft"], "idea" -> "note"          =>  ["draft"]
    """
    if source_tag not in tags:
        return list(tags)

    result: list[str] = []
    for tag in tags:
        if tag == source_tag:
            tag = target_tag
        if tag == target_tag and target_tag in result:
            continue
        result.append(tag)
    return result


def replace_file_tag(path: Path, source_tag: str, target_tag: str) -> bool:
    """Swap source_tag for target_tag on a file's #+filetags line.

    A file without a #+filetags line is left alone. The file is written only
    when the tag line actually changes.

    Returns:
        True if the file was written.
    """
    buffer = OrgBuffer.load(path)
    current = buffer.filetags()
    if current is None:
        log.info("No #+filetags line in %s; tags left unchanged", path)
        return False

    updated = replace_tag(current, source_tag, target_tag)
    if updated == current:
        log.debug("Tags of %s already up to date", path)
        return False

    buffer.set_filetags(updated)
    written = buffer.save()
    if written:
        log.info("Retagged %s: %s -> %s", path, source_tag, target_tag)
    return written
