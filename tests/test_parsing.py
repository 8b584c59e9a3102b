"""Tests for roam_organize.parser: org buffers and id links."""

import pytest

from roam_organize.errors import NotAHeadlineError
from roam_organize.parser import OrgBuffer, extract_id_link, extract_id_links, format_id_link, parse_filetags

INBOX = """#+title: Inbox

* Today
** [[id:aaa][First note]]
Some context.
*** Child detail
** [[id:bbb][Second note]]
* Later
"""


@pytest.fixture
def inbox(tmp_path):
    path = tmp_path / "inbox.org"
    path.write_text(INBOX, encoding="utf-8")
    return OrgBuffer.load(path)


class TestHeadlines:
    def test_headline_on_its_own_line(self, inbox):
        headline = inbox.headline_at(4)
        assert headline.title == "[[id:aaa][First note]]"
        assert headline.level == 2

    def test_body_line_resolves_to_enclosing_headline(self, inbox):
        assert inbox.headline_at(5).title == "[[id:aaa][First note]]"
        assert inbox.headline_at(6).title == "Child detail"

    def test_subtree_includes_descendants_only(self, inbox):
        headline = inbox.headline_at(4)
        assert inbox.lines[headline.start : headline.end] == [
            "** [[id:aaa][First note]]\n",
            "Some context.\n",
            "*** Child detail\n",
        ]

    @pytest.mark.parametrize("line", [1, 2, 0, 99])
    def test_outside_any_headline(self, inbox, line):
        with pytest.raises(NotAHeadlineError):
            inbox.headline_at(line)

    def test_bold_text_is_not_a_headline(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", "*bold* text\n")
        with pytest.raises(NotAHeadlineError):
            buffer.headline_at(1)


class TestEditing:
    def test_cut_removes_subtree(self, inbox):
        removed = inbox.cut(inbox.headline_at(4))
        assert removed.startswith("** [[id:aaa][First note]]\n")
        assert "Child detail" in removed
        assert "First note" not in inbox.text
        assert "** [[id:bbb][Second note]]" in inbox.text

    def test_append_adds_missing_newline(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", "#+title: X")
        buffer.append("* Entry")
        assert buffer.text == "#+title: X\n* Entry\n"

    def test_save_only_when_modified(self, inbox):
        assert inbox.save() is False
        inbox.append("* New\n")
        assert inbox.save() is True
        assert inbox.save() is False
        assert inbox.path.read_text().endswith("* New\n")

    def test_load_missing_file_is_empty(self, tmp_path):
        buffer = OrgBuffer.load(tmp_path / "new.org")
        assert buffer.text == ""
        assert buffer.save() is False
        assert not (tmp_path / "new.org").exists()


class TestFiletags:
    def test_parse_filetags(self):
        assert parse_filetags(":idea:draft:") == ["idea", "draft"]
        assert parse_filetags("") == []

    def test_read_and_rewrite(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", "#+TITLE: X\n#+FILETAGS: :a:b:\nbody\n")
        assert buffer.filetags() == ["a", "b"]

        buffer.set_filetags(["c", "b"])

        assert buffer.text == "#+TITLE: X\n#+FILETAGS: :c:b:\nbody\n"

    def test_no_filetags_line(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", "#+title: X\n")
        assert buffer.filetags() is None
        assert buffer.set_filetags(["a"]) is False
        assert buffer.modified is False


class TestProperties:
    TEXT = (
        ":PROPERTIES:\n"
        ":ID:       file-node\n"
        ":END:\n"
        "#+title: Ideas\n"
        "* Sub map\n"
        ":PROPERTIES:\n"
        ":ID: sub-node\n"
        ":NUM_OF_IDEA_NODES: 1\n"
        ":END:\n"
    )

    def test_set_property_on_file_level_entry(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", self.TEXT)

        assert buffer.set_property("file-node", "NUM_OF_IDEA_NODES", "3")

        assert buffer.lines[2] == ":NUM_OF_IDEA_NODES: 3\n"
        assert buffer.get_property("file-node", "NUM_OF_IDEA_NODES") == "3"

    def test_set_property_replaces_existing_value(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", self.TEXT)

        buffer.set_property("sub-node", "NUM_OF_IDEA_NODES", "7")

        assert buffer.get_property("sub-node", "NUM_OF_IDEA_NODES") == "7"
        assert buffer.text.count("NUM_OF_IDEA_NODES") == 1

    def test_same_value_leaves_buffer_unmodified(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", self.TEXT)
        buffer.set_property("sub-node", "NUM_OF_IDEA_NODES", "1")
        assert buffer.modified is False

    def test_unknown_id(self, tmp_path):
        buffer = OrgBuffer(tmp_path / "x.org", self.TEXT)
        assert buffer.set_property("nope", "X", "1") is False

    def test_crlf_line_endings_kept(self, tmp_path):
        path = tmp_path / "x.org"
        path.write_bytes(b":PROPERTIES:\r\n:ID: a\r\n:END:\r\n#+title: A\r\n")
        buffer = OrgBuffer.load(path)

        buffer.set_property("a", "X", "1")
        buffer.save()

        assert buffer.lines[2] == ":X: 1\r\n"
        assert path.read_bytes() == b":PROPERTIES:\r\n:ID: a\r\n:X: 1\r\n:END:\r\n#+title: A\r\n"


class TestIdLinks:
    def test_extract_first_id_link(self):
        assert extract_id_link("TODO [[id:abc-123][Caching]] and [[id:def][Other]]") == "abc-123"

    def test_no_id_link(self):
        assert extract_id_link("[[https://example.com][site]]") is None
        assert extract_id_link("plain title") is None

    def test_extract_unique_links(self):
        text = "* [[id:a][A]]\n* [[id:b][B]]\nsee [[id:a][A again]]\n"
        assert extract_id_links(text) == ["a", "b"]

    def test_format_escapes_brackets(self):
        assert format_id_link("a", "Notes [draft]") == "[[id:a][Notes (draft)]]"
