"""
Document model for MDX content pages.

A document is a YAML metadata header between ``---`` marker lines followed
by an MDX body. The raw header text is kept verbatim so that
``header + body`` always reproduces the file exactly; the parsed mapping is
only used for reading.

Writes go through ``write_document``, which refuses to touch the file if
the rewritten text no longer has a sound header/body structure.
"""

import logging
import os
import re
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

logger = logging.getLogger(__name__)

CONTENT_EXTENSIONS = (".mdx", ".md")

FRONTMATTER_RE = re.compile(r"\A(---\n(.*?)\n---\n?)(.*)\Z", re.DOTALL)

# A body that opens with a bare "key: value" line or a lone delimiter usually
# means the header was cut short or duplicated by an edit.
TRUNCATED_HEADER_RE = re.compile(r"^(?:---\s*$|[A-Za-z_][\w-]*:(?:\s|$))")

SKIPPED_PAGE_TYPES = {"documentation", "stub"}


class DocumentParseError(Exception):
    """Raised when a document's header cannot be parsed."""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class DocumentIntegrityError(Exception):
    """Raised when rewritten text fails the structural post-condition."""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


@dataclass
class Document:
    """One parsed content file."""
    path: str
    relative_path: str
    raw: str
    header: str
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    body: str = ""

    @property
    def has_header(self) -> bool:
        return bool(self.header)

    @property
    def slug(self) -> str:
        """Relative path without extension, using forward slashes."""
        stem = os.path.splitext(self.relative_path)[0].replace(os.sep, "/")
        if stem.endswith("/index"):
            stem = stem[: -len("/index")]
        return stem

    @property
    def page_id(self) -> str:
        """Filename stem, or the directory name for index pages."""
        return self.slug.rsplit("/", 1)[-1]

    @property
    def page_type(self) -> Optional[str]:
        return self.frontmatter.get("pageType")

    @property
    def body_line_offset(self) -> int:
        """Number of raw-file lines that precede the first body line."""
        return self.header.count("\n")

    def serialize(self) -> str:
        return self.header + self.body


def parse_frontmatter(text: str, path: str = "<string>") -> Tuple[str, Dict[str, Any], str]:
    """
    Split text into (header, frontmatter, body).

    Args:
        text: Full document text
        path: Used in error messages only

    Returns:
        Raw header text (empty if absent), parsed mapping, body text

    Raises:
        DocumentParseError: If the header is not valid YAML or not a mapping
    """
    m = FRONTMATTER_RE.match(text)
    if not m:
        return "", {}, text

    header, yaml_text, body = m.group(1), m.group(2), m.group(3)
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise DocumentParseError(path, f"invalid frontmatter YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DocumentParseError(path, "frontmatter must be a mapping")
    return header, data, body


def parse_document(path: str, text: str, content_dir: Optional[str] = None) -> Document:
    """Build a Document from text already read from path."""
    header, frontmatter, body = parse_frontmatter(text, path)
    if content_dir:
        relative = os.path.relpath(path, content_dir)
    else:
        relative = os.path.basename(path)
    return Document(
        path=path,
        relative_path=relative.replace(os.sep, "/"),
        raw=text,
        header=header,
        frontmatter=frontmatter,
        body=body,
    )


def read_document(path: str, content_dir: Optional[str] = None) -> Document:
    """Read and parse one file from disk."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentParseError(path, f"unreadable: {e}") from e
    return parse_document(path, text, content_dir)


def find_content_files(content_dir: str) -> List[str]:
    """All .mdx/.md files under content_dir, sorted for deterministic runs."""
    found = []
    for root, dirs, files in os.walk(content_dir):
        dirs.sort()
        for name in files:
            if name.endswith(CONTENT_EXTENSIONS):
                found.append(os.path.join(root, name))
    return sorted(found)


def load_documents(content_dir: str, files: Optional[Sequence[str]] = None) -> Tuple[List[Document], List[DocumentParseError]]:
    """
    Parse every content file, skipping the ones that fail.

    Args:
        content_dir: Root of the content tree
        files: Optional explicit file list (defaults to everything under content_dir)

    Returns:
        (documents, load_errors)
    """
    documents = []
    errors = []
    for path in (files if files is not None else find_content_files(content_dir)):
        try:
            documents.append(read_document(path, content_dir))
        except DocumentParseError as e:
            logger.warning(f"Skipping {path}: {e.message}")
            errors.append(e)
    logger.debug(f"Loaded {len(documents)} documents from {content_dir} ({len(errors)} skipped)")
    return documents, errors


def should_skip(doc: Document, skip_prefixes: Sequence[str] = ("internal/",)) -> bool:
    """True for pages under an excluded prefix such as internal/."""
    return any(doc.relative_path.startswith(prefix) for prefix in skip_prefixes)


def is_documentation_page(doc: Document) -> bool:
    return doc.page_type in SKIPPED_PAGE_TYPES


def normalize_trailing_newline(text: str) -> str:
    """Collapse trailing newlines to exactly one (empty text stays empty)."""
    if not text:
        return text
    return text.rstrip("\n") + "\n"


def _first_content_line(body: str) -> str:
    for line in body.split("\n"):
        if line.strip():
            return line
    return ""


def check_structure(path: str, new_text: str, original_text: Optional[str] = None) -> Document:
    """
    Verify rewritten text before it is written.

    Args:
        path: File the text is destined for
        new_text: Candidate file contents
        original_text: Current file contents, if any

    Returns:
        The parsed candidate document

    Raises:
        DocumentIntegrityError: If the header no longer parses, was lost,
            does not round-trip, or the body now starts like header syntax
    """
    try:
        candidate = parse_document(path, new_text)
    except DocumentParseError as e:
        raise DocumentIntegrityError(path, f"header no longer parses ({e.message})") from e

    if candidate.serialize() != new_text:
        raise DocumentIntegrityError(path, "header/body round trip is not exact")

    if original_text is None:
        return candidate

    try:
        original = parse_document(path, original_text)
    except DocumentParseError:
        original = None

    if original is not None and original.has_header:
        if not candidate.has_header:
            raise DocumentIntegrityError(path, "metadata header was lost")
        new_first = _first_content_line(candidate.body)
        old_first = _first_content_line(original.body)
        if TRUNCATED_HEADER_RE.match(new_first) and not TRUNCATED_HEADER_RE.match(old_first):
            raise DocumentIntegrityError(path, f"body starts with header-like text: {new_first!r}")

    return candidate


def write_document(path: str, new_text: str, original_text: Optional[str] = None) -> bool:
    """
    Normalize, verify, and write new_text to path.

    Returns:
        True if the file changed, False if the text was already identical

    Raises:
        DocumentIntegrityError: If the structural check fails (nothing is written)
    """
    new_text = normalize_trailing_newline(new_text)
    if original_text is not None and new_text == original_text:
        return False
    check_structure(path, new_text, original_text)

    # Write atomically (write to temp then rename)
    tmp_path = f"{path}.tmp"
    try:
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(new_text)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.debug(f"Wrote {path}")
    return True


class LineIndex:
    """Offset-to-line lookup for repeated queries on the same text."""

    def __init__(self, text: str):
        self._newlines = [i for i, ch in enumerate(text) if ch == "\n"]

    def line_at(self, pos: int) -> int:
        return bisect_left(self._newlines, pos) + 1
