"""Parsing and editing of org files."""

from .links import ID_LINK_PATTERN, extract_id_link, extract_id_links, format_id_link
from .org import FILETAGS_PATTERN, Headline, OrgBuffer, format_filetags, parse_filetags

__all__ = [
    "FILETAGS_PATTERN",
    "ID_LINK_PATTERN",
    "Headline",
    "OrgBuffer",
    "extract_id_link",
    "extract_id_links",
    "format_filetags",
    "format_id_link",
    "parse_filetags",
]
