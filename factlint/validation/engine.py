"""
Validation engine.

Loads the document set once, runs every registered rule over it in a
single pass, and collects typed issues. File-scoped rules see one
document at a time; global rules see the whole set once.

Rules that raise do not stop the pass: the failure is recorded as an
ERROR issue against the rule and the document (or ``global``).

Fix application is file-granular. For each file the raw text is reloaded
from disk, fixes are applied one after another against the current text,
and the result is verified before a single write. A file whose fixes fail
is left untouched.
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config.settings import Settings
from ..content.document import (
    Document,
    DocumentIntegrityError,
    load_documents,
    write_document,
)
from ..facts.patterns import SearchPattern, build_patterns
from ..facts.store import FactTable
from .fixes import CustomFix, Fix, ReplaceText

logger = logging.getLogger(__name__)

FILE_SCOPE = "file"
GLOBAL_SCOPE = "global"
GLOBAL_FILE = "global"
LOAD_RULE_ID = "document-load"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Issue:
    """A single finding produced by a rule."""
    rule: str
    file: str
    line: Optional[int]
    message: str
    severity: Severity = Severity.ERROR
    fix: Optional[Fix] = None

    @property
    def is_fixable(self) -> bool:
        return self.fix is not None

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}" if self.line else self.file
        return f"[{self.severity.value.upper()}] {self.rule}: {location} - {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule,
            "file": self.file,
            "line": self.line,
            "message": self.message,
            "severity": self.severity.value,
            "fixable": self.is_fixable,
        }


@dataclass(frozen=True)
class RunContext:
    """Everything rules may read during one run. Built once by ValidationEngine.load()."""
    content_dir: str
    documents: Tuple[Document, ...]
    facts: FactTable
    settings: Settings
    patterns: Tuple[SearchPattern, ...] = ()


class RuleRegistrationError(Exception):
    """Raised when a rule cannot be registered."""
    pass


class Rule(ABC):
    """Base class for validation rules."""
    id: str = ""
    name: str = ""
    description: str = ""
    scope: str = FILE_SCOPE

    @abstractmethod
    def check(self, target: Any, context: RunContext) -> List[Issue]:
        """Check a Document (file scope) or the RunContext itself (global scope)."""

    def apply_fix(self, content: str, fix: CustomFix, context: RunContext, path: str) -> str:
        """Apply one of this rule's custom fixes to content."""
        raise TypeError(f"Rule {self.id} has no fixer for {type(fix).__name__}")

    def issue(self, doc_or_file: Any, line: Optional[int], message: str,
              severity: Severity = Severity.ERROR, fix: Optional[Fix] = None) -> Issue:
        file = doc_or_file.path if isinstance(doc_or_file, Document) else str(doc_or_file)
        return Issue(rule=self.id, file=file, line=line, message=message, severity=severity, fix=fix)


@dataclass
class FixError:
    file: str
    message: str


@dataclass
class FixResult:
    files_fixed: int = 0
    issues_fixed: int = 0
    errors: List[FixError] = field(default_factory=list)
    fixed_paths: List[str] = field(default_factory=list)


class ValidationEngine:
    """Registers rules, loads documents, validates, and applies fixes."""

    def __init__(self, content_dir: str, facts: Optional[FactTable] = None,
                 settings: Optional[Settings] = None):
        self.content_dir = content_dir
        self.facts = facts if facts is not None else FactTable()
        self.settings = settings or Settings(content_dir=content_dir)
        self.rules: "OrderedDict[str, Rule]" = OrderedDict()
        self.context: Optional[RunContext] = None
        self.load_errors: List[Any] = []

    def register(self, rule: Rule) -> None:
        """
        Add a rule.

        Raises:
            RuleRegistrationError: If the rule has no id, a duplicate id,
                or an unknown scope
        """
        if not rule.id:
            raise RuleRegistrationError(f"{type(rule).__name__} has no id")
        if rule.id in self.rules:
            raise RuleRegistrationError(f"Rule '{rule.id}' is already registered")
        if rule.scope not in (FILE_SCOPE, GLOBAL_SCOPE):
            raise RuleRegistrationError(f"Rule '{rule.id}' has unknown scope '{rule.scope}'")
        self.rules[rule.id] = rule

    def register_all(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self.register(rule)

    def load(self, files: Optional[Sequence[str]] = None) -> RunContext:
        """Parse every document once and build the run context."""
        documents, errors = load_documents(self.content_dir, files)
        self.load_errors = errors
        self.context = RunContext(
            content_dir=self.content_dir,
            documents=tuple(documents),
            facts=self.facts,
            settings=self.settings,
            patterns=tuple(build_patterns(self.facts)),
        )
        logger.info(f"Loaded {len(documents)} documents, {len(self.facts)} facts, {len(self.rules)} rules")
        return self.context

    def _select_rules(self, rule_ids: Optional[Sequence[str]]) -> List[Rule]:
        if not rule_ids:
            return list(self.rules.values())
        selected = []
        for rule_id in rule_ids:
            rule = self.rules.get(rule_id)
            if rule is None:
                logger.warning(f"Unknown rule '{rule_id}' ignored")
                continue
            selected.append(rule)
        return selected

    def _run_rule(self, rule: Rule, target: Any, file: str) -> List[Issue]:
        try:
            return list(rule.check(target, self.context) or [])
        except Exception as e:
            logger.exception(f"Rule {rule.id} failed on {file}")
            return [Issue(rule=rule.id, file=file, line=None,
                          message=f"Rule threw error: {e}", severity=Severity.ERROR)]

    def validate(self, rule_ids: Optional[Sequence[str]] = None,
                 files: Optional[Sequence[str]] = None) -> List[Issue]:
        """
        Run rules over the loaded documents.

        Args:
            rule_ids: Restrict to these rules (default: all registered)
            files: Restrict file-scoped rules to these paths

        Returns:
            Issues in rule-then-document order
        """
        if self.context is None:
            self.load()

        issues: List[Issue] = [
            Issue(rule=LOAD_RULE_ID, file=e.path, line=None,
                  message=f"Could not load document: {e.message}", severity=Severity.WARNING)
            for e in self.load_errors
        ]

        documents = self.context.documents
        if files is not None:
            wanted = set(files)
            documents = tuple(d for d in documents if d.path in wanted or d.relative_path in wanted)

        rules = self._select_rules(rule_ids)
        for rule in rules:
            if rule.scope == FILE_SCOPE:
                for doc in documents:
                    issues.extend(self._run_rule(rule, doc, doc.path))
        for rule in rules:
            if rule.scope == GLOBAL_SCOPE:
                issues.extend(self._run_rule(rule, self.context, GLOBAL_FILE))
        return issues

    def _apply_one(self, content: str, issue: Issue, path: str) -> str:
        fix = issue.fix
        if isinstance(fix, ReplaceText):
            return fix.apply(content)
        if isinstance(fix, CustomFix):
            rule = self.rules.get(issue.rule)
            if rule is None:
                raise TypeError(f"No registered rule '{issue.rule}' to apply {type(fix).__name__}")
            return rule.apply_fix(content, fix, self.context, path)
        raise TypeError(f"Unsupported fix type {type(fix).__name__}")

    def apply_fixes(self, issues: Iterable[Issue]) -> FixResult:
        """
        Apply the fixes attached to issues.

        Returns:
            FixResult with counts and per-file errors
        """
        if self.context is None:
            self.load()

        by_file: "OrderedDict[str, List[Issue]]" = OrderedDict()
        for issue in issues:
            if issue.is_fixable and issue.file != GLOBAL_FILE:
                by_file.setdefault(issue.file, []).append(issue)

        result = FixResult()
        for path, file_issues in by_file.items():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    original = f.read()
            except (OSError, UnicodeDecodeError) as e:
                result.errors.append(FixError(path, f"could not read: {e}"))
                continue

            content = original
            applied = 0
            try:
                for issue in file_issues:
                    updated = self._apply_one(content, issue, path)
                    if updated != content:
                        applied += 1
                    content = updated
            except Exception as e:
                logger.exception(f"Fix failed for {path}")
                result.errors.append(FixError(path, f"fix failed: {e}"))
                continue

            if content == original:
                continue

            try:
                changed = write_document(path, content, original)
            except DocumentIntegrityError as e:
                logger.error(f"Refusing to write {path}: {e.message}")
                result.errors.append(FixError(path, e.message))
                continue
            except OSError as e:
                result.errors.append(FixError(path, f"could not write: {e}"))
                continue

            if changed:
                result.files_fixed += 1
                result.issues_fixed += applied
                result.fixed_paths.append(path)
        return result

    @staticmethod
    def get_summary(issues: Sequence[Issue]) -> Dict[str, Any]:
        by_rule = Counter(i.rule for i in issues)
        by_severity = Counter(i.severity.value for i in issues)
        return {
            "total": len(issues),
            "by_rule": dict(sorted(by_rule.items())),
            "by_severity": {s.value: by_severity.get(s.value, 0) for s in Severity},
            "has_errors": by_severity.get(Severity.ERROR.value, 0) > 0,
            "fixable": sum(1 for i in issues if i.is_fixable),
        }
