"""
Built-in validation rules.

Modules:
    value_consistency - Cross-page numeric conflicts (global)
    fact_consistency - Hardcoded values that match canonical facts
    fact_refs - <F> tags naming unknown facts
    component_imports - Wiki components used without an import
    component_refs - Unused imports and EntityLinks to unknown entities
    frontmatter_schema - Frontmatter schema validation
    footnotes - Orphaned references and duplicate definitions
    table_headers - Canonical headers for standard section tables
"""

from typing import List

from ..engine import Rule
from .component_imports import ComponentImportsRule
from .component_refs import ComponentRefsRule
from .fact_consistency import FactConsistencyRule
from .fact_refs import FactRefsRule
from .footnotes import FootnoteIntegrityRule
from .frontmatter_schema import FrontmatterSchemaRule
from .table_headers import TableHeadersRule
from .value_consistency import ValueConsistencyRule

RULE_CLASSES = (
    FrontmatterSchemaRule,
    ComponentImportsRule,
    ComponentRefsRule,
    FactRefsRule,
    FactConsistencyRule,
    FootnoteIntegrityRule,
    TableHeadersRule,
    ValueConsistencyRule,
)


def all_rules() -> List[Rule]:
    """Fresh instances of every built-in rule."""
    return [cls() for cls in RULE_CLASSES]
