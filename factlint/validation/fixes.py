"""Fix descriptors attached to issues.

``ReplaceText`` is applied by the engine itself. Anything deriving from
``CustomFix`` belongs to the rule that produced it; the engine hands it
back to that rule's ``apply_fix`` and never looks inside.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Fix:
    """Base class for all fixes."""


@dataclass(frozen=True)
class ReplaceText(Fix):
    """Replace the first occurrence of old_text with new_text."""
    old_text: str
    new_text: str

    def apply(self, content: str) -> str:
        if self.old_text not in content:
            return content
        return content.replace(self.old_text, self.new_text, 1)


@dataclass(frozen=True)
class CustomFix(Fix):
    """Base class for fixes only their originating rule understands."""


@dataclass(frozen=True)
class AddToImport(CustomFix):
    """Append components to the existing @components/wiki import."""
    components: Tuple[str, ...]


@dataclass(frozen=True)
class CreateImport(CustomFix):
    """Insert a new @components/wiki import after the header."""
    components: Tuple[str, ...]


@dataclass(frozen=True)
class WrapFacts(CustomFix):
    """Re-scan the current text and wrap every annotatable fact value."""
