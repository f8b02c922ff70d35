"""Tests for factlint/validation/engine.py - registration, the validation pass, and fixes."""

from dataclasses import dataclass
from unittest.mock import patch

import pytest

from factlint.validation.engine import (
    FILE_SCOPE,
    GLOBAL_FILE,
    GLOBAL_SCOPE,
    LOAD_RULE_ID,
    Issue,
    Rule,
    RuleRegistrationError,
    Severity,
    ValidationEngine,
)
from factlint.validation.fixes import CustomFix, Fix, ReplaceText

from conftest import write_page


PAGE = "---\ntitle: Acme\n---\nAcme uses colour.\n"


class RecordingRule(Rule):
    """File rule that records which documents it saw."""
    id = "recording"
    description = "records documents"
    scope = FILE_SCOPE

    def __init__(self):
        self.seen = []

    def check(self, doc, context):
        self.seen.append(doc)
        return []


class SpellingRule(Rule):
    id = "spelling"
    description = "colour -> color"

    def check(self, doc, context):
        if "colour" not in doc.raw:
            return []
        return [self.issue(doc, 4, "British spelling", Severity.WARNING,
                           fix=ReplaceText("colour", "color"))]


@dataclass(frozen=True)
class Shout(CustomFix):
    pass


class ShoutRule(Rule):
    id = "shout"
    description = "upper-cases the body"

    def check(self, doc, context):
        return [self.issue(doc, 4, "too quiet", Severity.INFO, fix=Shout())]

    def apply_fix(self, content, fix, context, path):
        header, _, body = content.partition("---\n")[2].partition("---\n")
        return "---\n" + header + "---\n" + body.upper()


class ExplodingRule(Rule):
    id = "exploding"
    description = "always raises"

    def check(self, doc, context):
        raise RuntimeError("boom")


class ExplodingGlobalRule(ExplodingRule):
    id = "exploding-global"
    scope = GLOBAL_SCOPE


class CountingGlobalRule(Rule):
    id = "counting-global"
    description = "counts documents"
    scope = GLOBAL_SCOPE

    def check(self, context, _context):
        return [self.issue(GLOBAL_FILE, None, f"{len(context.documents)} documents", Severity.INFO)]


@pytest.fixture
def engine(content_dir):
    write_page(content_dir, "a.mdx", PAGE)
    write_page(content_dir, "b.mdx", PAGE)
    return ValidationEngine(str(content_dir))


class TestRegistration:
    def test_duplicate_id_rejected(self, engine):
        engine.register(SpellingRule())
        with pytest.raises(RuleRegistrationError):
            engine.register(SpellingRule())

    def test_missing_id_rejected(self, engine):
        class NoId(Rule):
            def check(self, target, context):
                return []

        with pytest.raises(RuleRegistrationError):
            engine.register(NoId())

    def test_unknown_scope_rejected(self, engine):
        class Weird(Rule):
            id = "weird"
            scope = "page"

            def check(self, target, context):
                return []

        with pytest.raises(RuleRegistrationError):
            engine.register(Weird())


class TestValidate:
    def test_documents_loaded_once_and_shared(self, engine):
        """Every file rule sees the same parsed Document objects."""
        first, second = RecordingRule(), RecordingRule()
        second.id = "recording-2"
        engine.register_all([first, second])

        engine.validate()

        assert len(first.seen) == 2
        assert all(a is b for a, b in zip(first.seen, second.seen))

    def test_global_rule_runs_once(self, engine):
        engine.register(CountingGlobalRule())
        issues = engine.validate()
        assert [(i.file, i.message) for i in issues] == [(GLOBAL_FILE, "2 documents")]

    def test_rule_error_does_not_stop_the_pass(self, engine):
        """A rule that raises becomes an ERROR issue and the others still run."""
        engine.register_all([ExplodingRule(), SpellingRule(), ExplodingGlobalRule()])

        issues = engine.validate()

        errors = [i for i in issues if i.rule == "exploding"]
        assert len(errors) == 2
        assert all(i.severity == Severity.ERROR for i in errors)
        assert errors[0].message == "Rule threw error: boom"
        assert len([i for i in issues if i.rule == "spelling"]) == 2
        global_errors = [i for i in issues if i.rule == "exploding-global"]
        assert [(i.file, i.message) for i in global_errors] == [(GLOBAL_FILE, "Rule threw error: boom")]

    def test_rule_selection(self, engine):
        engine.register_all([SpellingRule(), ShoutRule()])
        issues = engine.validate(["shout", "unknown"])
        assert {i.rule for i in issues} == {"shout"}

    def test_file_selection(self, engine, content_dir):
        engine.register(SpellingRule())
        issues = engine.validate(files=["a.mdx"])
        assert [i.file for i in issues] == [str(content_dir / "a.mdx")]

    def test_load_errors_become_warnings(self, content_dir):
        write_page(content_dir, "bad.mdx", "---\ntitle: [\n---\nBody\n")
        engine = ValidationEngine(str(content_dir))

        issues = engine.validate()

        assert [(i.rule, i.severity) for i in issues] == [(LOAD_RULE_ID, Severity.WARNING)]

    def test_issue_str(self):
        issue = Issue(rule="r", file="a.mdx", line=3, message="bad", severity=Severity.WARNING)
        assert str(issue) == "[WARNING] r: a.mdx:3 - bad"


class TestApplyFixes:
    def test_replace_text_fix(self, engine, content_dir):
        engine.register(SpellingRule())
        result = engine.apply_fixes(engine.validate())

        assert result.files_fixed == 2
        assert result.issues_fixed == 2
        assert (content_dir / "a.mdx").read_text(encoding="utf-8") == PAGE.replace("colour", "color")

    def test_fixes_compose_per_file(self, engine, content_dir):
        """Several fixes on one file apply in order against the current text."""
        engine.register_all([SpellingRule(), ShoutRule()])

        result = engine.apply_fixes(engine.validate())

        assert (content_dir / "a.mdx").read_text(encoding="utf-8") == "---\ntitle: Acme\n---\nACME USES COLOR.\n"
        assert result.issues_fixed == 4
        assert result.files_fixed == 2

    def test_fix_reads_current_disk_content(self, engine, content_dir):
        """Fixes apply to what is on disk now, not the text seen at validation."""
        engine.register(SpellingRule())
        issues = engine.validate()
        write_page(content_dir, "a.mdx", PAGE.replace("Acme uses", "We use"))

        engine.apply_fixes(issues)

        assert (content_dir / "a.mdx").read_text(encoding="utf-8") == "---\ntitle: Acme\n---\nWe use color.\n"

    def test_unknown_fix_type_is_an_error(self, engine, content_dir):
        issue = Issue(rule="x", file=str(content_dir / "a.mdx"), line=1, message="m", fix=Fix())

        result = engine.apply_fixes([issue])

        assert result.files_fixed == 0
        assert len(result.errors) == 1
        assert (content_dir / "a.mdx").read_text(encoding="utf-8") == PAGE

    def test_integrity_failure_leaves_file_untouched(self, engine, content_dir):
        path = content_dir / "a.mdx"
        original = path.read_bytes()
        issue = Issue(rule="x", file=str(path), line=1, message="m",
                      fix=ReplaceText("title: Acme", 'title: "Acme'))

        result = engine.apply_fixes([issue])

        assert path.read_bytes() == original
        assert result.files_fixed == 0
        assert len(result.errors) == 1

    def test_global_issues_are_not_fixed(self, engine):
        issue = Issue(rule="x", file=GLOBAL_FILE, line=None, message="m", fix=ReplaceText("a", "b"))
        with patch("factlint.validation.engine.write_document") as mock_write:
            result = engine.apply_fixes([issue])
        mock_write.assert_not_called()
        assert result.files_fixed == 0

    def test_only_changing_fixes_are_counted(self, engine, content_dir):
        """A fix made redundant by an earlier one in the same file is not counted."""
        path = str(content_dir / "a.mdx")
        issues = [
            Issue(rule="x", file=path, line=4, message="m", fix=ReplaceText("colour", "color")),
            Issue(rule="x", file=path, line=4, message="m", fix=ReplaceText("colour", "color")),
        ]

        result = engine.apply_fixes(issues)

        assert result.files_fixed == 1
        assert result.issues_fixed == 1

    def test_no_op_fix_does_not_write(self, engine, content_dir):
        issue = Issue(rule="x", file=str(content_dir / "a.mdx"), line=1, message="m",
                      fix=ReplaceText("not present", "y"))
        result = engine.apply_fixes([issue])
        assert result.files_fixed == 0
        assert result.errors == []


class TestSummary:
    def test_get_summary(self):
        issues = [
            Issue("a", "f", 1, "m", Severity.ERROR),
            Issue("a", "f", 2, "m", Severity.WARNING, fix=ReplaceText("x", "y")),
            Issue("b", "f", 3, "m", Severity.INFO),
        ]

        summary = ValidationEngine.get_summary(issues)

        assert summary["total"] == 3
        assert summary["by_rule"] == {"a": 2, "b": 1}
        assert summary["by_severity"] == {"info": 1, "warning": 1, "error": 1}
        assert summary["has_errors"] is True
        assert summary["fixable"] == 1

    def test_no_errors(self):
        summary = ValidationEngine.get_summary([Issue("a", "f", 1, "m", Severity.INFO)])
        assert summary["has_errors"] is False
