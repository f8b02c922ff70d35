"""Tests for factlint/content/document.py - parsing, structure checks, and safe writes."""

import logging

import pytest

from factlint.content.document import (
    DocumentIntegrityError,
    DocumentParseError,
    check_structure,
    find_content_files,
    load_documents,
    normalize_trailing_newline,
    parse_document,
    should_skip,
    write_document,
)

from conftest import write_page


PAGE = "---\ntitle: Acme\npageType: content\n---\nAcme is a company.\n"


class TestParseDocument:
    """Header/body splitting."""

    def test_round_trip_is_exact(self):
        """header + body reproduces the raw text."""
        doc = parse_document("/c/companies/acme.mdx", PAGE, "/c")
        assert doc.frontmatter == {"title": "Acme", "pageType": "content"}
        assert doc.body == "Acme is a company.\n"
        assert doc.serialize() == PAGE
        assert doc.body_line_offset == 4

    def test_no_header(self):
        doc = parse_document("/c/a.mdx", "Just text\n", "/c")
        assert doc.header == ""
        assert doc.frontmatter == {}
        assert doc.body == "Just text\n"
        assert not doc.has_header

    def test_invalid_yaml_raises(self):
        """Malformed header YAML is a parse error."""
        with pytest.raises(DocumentParseError):
            parse_document("/c/a.mdx", "---\ntitle: [unclosed\n---\nBody\n")

    def test_non_mapping_header_raises(self):
        with pytest.raises(DocumentParseError):
            parse_document("/c/a.mdx", "---\n- a\n- b\n---\nBody\n")

    def test_slug_and_page_id(self):
        """Page id is the filename stem, or the directory for index pages."""
        doc = parse_document("/c/companies/acme.mdx", PAGE, "/c")
        assert doc.slug == "companies/acme"
        assert doc.page_id == "acme"

        index = parse_document("/c/companies/acme/index.mdx", PAGE, "/c")
        assert index.slug == "companies/acme"
        assert index.page_id == "acme"

    def test_should_skip_internal(self):
        doc = parse_document("/c/internal/notes.mdx", PAGE, "/c")
        assert should_skip(doc)
        assert not should_skip(parse_document("/c/companies/acme.mdx", PAGE, "/c"))


class TestNormalizeTrailingNewline:
    def test_collapses_extra_newlines(self):
        assert normalize_trailing_newline("a\n\n\n") == "a\n"

    def test_adds_missing_newline(self):
        assert normalize_trailing_newline("a") == "a\n"

    def test_empty_stays_empty(self):
        assert normalize_trailing_newline("") == ""


class TestCheckStructure:
    """Structural post-conditions for rewritten text."""

    def test_accepts_body_only_change(self):
        new = PAGE.replace("company", "firm")
        doc = check_structure("a.mdx", new, PAGE)
        assert doc.frontmatter["title"] == "Acme"

    def test_rejects_unparseable_header(self):
        """An edit that breaks the header YAML is refused."""
        with pytest.raises(DocumentIntegrityError, match="no longer parses"):
            check_structure("a.mdx", PAGE.replace("title: Acme", 'title: "Acme'), PAGE)

    def test_rejects_lost_header(self):
        with pytest.raises(DocumentIntegrityError, match="lost"):
            check_structure("a.mdx", "title: Acme\nAcme is a company.\n", PAGE)

    def test_rejects_header_keys_spilling_into_body(self):
        """A body that now starts with a header key looks truncated."""
        original = "---\ntitle: Acme\nsidebar: x\n---\nBody text\n"
        broken = "---\ntitle: Acme\n---\nsidebar: x\nBody text\n"
        with pytest.raises(DocumentIntegrityError, match="header-like"):
            check_structure("a.mdx", broken, original)

    def test_body_that_already_started_like_a_key_is_fine(self):
        original = "---\ntitle: Acme\n---\nNote: this is prose.\n"
        check_structure("a.mdx", original.replace("prose", "text"), original)


class TestWriteDocument:
    """Safe writes."""

    def test_writes_and_normalizes(self, tmp_path):
        path = tmp_path / "a.mdx"
        path.write_text(PAGE, encoding="utf-8")

        changed = write_document(str(path), PAGE.replace("company", "firm") + "\n\n", PAGE)

        assert changed
        assert path.read_text(encoding="utf-8") == PAGE.replace("company", "firm")

    def test_identical_text_is_not_rewritten(self, tmp_path):
        path = tmp_path / "a.mdx"
        path.write_text(PAGE, encoding="utf-8")
        assert write_document(str(path), PAGE, PAGE) is False

    def test_failed_check_leaves_file_byte_identical(self, tmp_path):
        """A rejected write never touches the original file."""
        path = tmp_path / "a.mdx"
        path.write_bytes(PAGE.encode("utf-8"))

        with pytest.raises(DocumentIntegrityError):
            write_document(str(path), PAGE.replace("title: Acme", 'title: "Acme'), PAGE)

        assert path.read_bytes() == PAGE.encode("utf-8")
        assert not (tmp_path / "a.mdx.tmp").exists()


class TestLoadDocuments:
    """Batch loading."""

    def test_finds_mdx_and_md_sorted(self, content_dir):
        write_page(content_dir, "b.mdx", PAGE)
        write_page(content_dir, "a/c.md", PAGE)
        write_page(content_dir, "notes.txt", "ignored")

        files = find_content_files(str(content_dir))

        assert [f.replace(str(content_dir), "") for f in files] == ["/a/c.md", "/b.mdx"]

    def test_bad_file_is_skipped_with_warning(self, content_dir, caplog):
        """One unparseable page does not stop the batch."""
        write_page(content_dir, "good.mdx", PAGE)
        write_page(content_dir, "bad.mdx", "---\ntitle: [oops\n---\nBody\n")

        with caplog.at_level(logging.WARNING):
            docs, errors = load_documents(str(content_dir))

        assert [d.page_id for d in docs] == ["good"]
        assert len(errors) == 1
        assert errors[0].path.endswith("bad.mdx")
        assert "bad.mdx" in caplog.text
