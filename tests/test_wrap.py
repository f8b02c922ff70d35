"""Tests for factlint/facts/wrap.py - the fact-wrap run over a content tree."""

from unittest.mock import MagicMock, patch

import pytest

from factlint.facts.store import load_fact_table
from factlint.facts.wrap import PageNotFoundError, WRAP_TOOL, run_fact_wrap, select_files

from conftest import write_facts, write_page


ACME_PAGE = "---\ntitle: Acme\n---\n\nAcme is valued at \\$14 billion.\n"
GLOBEX_PAGE = "---\ntitle: Globex\n---\n\nGlobex has 2,300 employees, and a rival worth $14 billion.\n"


@pytest.fixture
def tree(content_dir, facts_dir):
    write_facts(facts_dir, "acme", {"valuation": {"value": "$14 billion"}})
    write_facts(facts_dir, "globex", {"employees": {"value": "2,300"}})
    write_page(content_dir, "companies/acme.mdx", ACME_PAGE)
    write_page(content_dir, "companies/globex/index.mdx", GLOBEX_PAGE)
    write_page(content_dir, "internal/notes.mdx", "---\ntitle: Notes\n---\nAcme: $14 billion\n")
    return content_dir, load_fact_table(str(facts_dir))


class TestDryRun:
    def test_reports_matches_without_writing(self, tree):
        """A dry run never touches files."""
        content_dir, facts = tree

        report = run_fact_wrap(str(content_dir), facts)

        assert report.total_matches == 3
        assert {f.relative_path for f in report.files_with_matches} == {
            "companies/acme.mdx", "companies/globex/index.mdx",
        }
        assert report.written_files == []
        assert (content_dir / "companies/acme.mdx").read_text(encoding="utf-8") == ACME_PAGE

    def test_internal_pages_are_skipped(self, tree):
        content_dir, facts = tree
        report = run_fact_wrap(str(content_dir), facts)
        assert all(not f.relative_path.startswith("internal/") for f in report.files)

    def test_counts(self, tree):
        content_dir, facts = tree
        report = run_fact_wrap(str(content_dir), facts)
        assert report.fact_count == 2
        assert report.pattern_count > 0


class TestApply:
    def test_writes_tags_and_import(self, tree):
        content_dir, facts = tree
        edit_log = MagicMock()

        report = run_fact_wrap(str(content_dir), facts, apply=True, edit_log=edit_log)

        text = (content_dir / "companies/acme.mdx").read_text(encoding="utf-8")
        assert text == (
            "---\ntitle: Acme\n---\n"
            "import {F} from '@components/wiki';\n"
            "\nAcme is valued at <F e=\"acme\" f=\"valuation\">\\$14 billion</F>.\n"
        )
        assert len(report.written_files) == 2
        assert report.failures == []

    def test_second_run_finds_nothing(self, tree):
        """Applying twice is the same as applying once."""
        content_dir, facts = tree
        run_fact_wrap(str(content_dir), facts, apply=True, edit_log=MagicMock())
        before = (content_dir / "companies/acme.mdx").read_text(encoding="utf-8")

        report = run_fact_wrap(str(content_dir), facts, apply=True, edit_log=MagicMock())

        assert report.total_matches == 0
        assert (content_dir / "companies/acme.mdx").read_text(encoding="utf-8") == before

    def test_logs_written_pages(self, tree):
        content_dir, facts = tree
        edit_log = MagicMock()

        run_fact_wrap(str(content_dir), facts, apply=True, edit_log=edit_log)

        edit_log.append_batch.assert_called_once()
        payload = edit_log.append_batch.call_args[0][0]
        assert sorted(item["pageId"] for item in payload) == ["acme", "globex"]
        assert all(item["tool"] == WRAP_TOOL for item in payload)
        assert all(item["agency"] == "automated" for item in payload)

    def test_no_log_on_dry_run(self, tree):
        content_dir, facts = tree
        edit_log = MagicMock()
        run_fact_wrap(str(content_dir), facts, edit_log=edit_log)
        edit_log.append_batch.assert_not_called()

    def test_integrity_failure_is_isolated(self, tree):
        """A file whose rewrite breaks the header is left alone; others still get written."""
        content_dir, facts = tree
        original = (content_dir / "companies/acme.mdx").read_bytes()

        def broken_annotate(doc, matches):
            if doc.page_id == "acme":
                return doc.raw.replace("title: Acme", 'title: "Acme')
            from factlint.facts.rewriter import annotate
            return annotate(doc, matches)

        with patch("factlint.facts.wrap.annotate", side_effect=broken_annotate):
            report = run_fact_wrap(str(content_dir), facts, apply=True, edit_log=MagicMock())

        assert (content_dir / "companies/acme.mdx").read_bytes() == original
        assert [f.relative_path for f in report.failures] == ["companies/acme.mdx"]
        assert [f.relative_path for f in report.written_files] == ["companies/globex/index.mdx"]


class TestSelectFiles:
    def test_page_id_selects_stem(self, tree):
        content_dir, _ = tree
        files = select_files(str(content_dir), "acme")
        assert [f.endswith("acme.mdx") for f in files] == [True]

    def test_page_id_selects_index_directory(self, tree):
        content_dir, _ = tree
        files = select_files(str(content_dir), "globex")
        assert len(files) == 1
        assert files[0].endswith("globex/index.mdx")

    def test_unknown_page_raises(self, tree):
        content_dir, facts = tree
        with pytest.raises(PageNotFoundError):
            run_fact_wrap(str(content_dir), facts, page_id="nope")

    def test_entity_filter(self, tree):
        content_dir, facts = tree
        report = run_fact_wrap(str(content_dir), facts, entity="globex")
        assert {m.fact_key for f in report.files for m in f.matches} == {"globex.employees"}
