"""org-roam id link extraction and formatting."""

import re

# Pattern for [[id:ID][DESCRIPTION]] links; captures the id and description
ID_LINK_PATTERN = re.compile(r"\[\[id:([^\]]+)\]\[([^\]]*)\]\]")


def extract_id_link(text: str) -> str | None:
    """Return the node id of the first id link in text, or None."""
    match = ID_LINK_PATTERN.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def extract_id_links(text: str) -> list[str]:
    """Return the unique node ids linked from text, in order of appearance."""
    seen: set[str] = set()
    ids: list[str] = []
    for node_id, _ in ID_LINK_PATTERN.findall(text):
        node_id = node_id.strip()
        if node_id and node_id not in seen:
            seen.add(node_id)
            ids.append(node_id)
    return ids


def format_id_link(node_id: str, title: str) -> str:
    """Format an id link. Square brackets in the title would end the link early."""
    description = title.replace("[", "(").replace("]", ")")
    return f"[[id:{node_id}][{description}]]"
