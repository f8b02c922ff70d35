"""
Canonical fact table.

Facts live in ``data/facts/<entity>.yaml``:

    entity: acme
    facts:
      valuation:
        value: "$14 billion"
        asOf: 2025-03
        source: https://example.com/press

An optional derived-values overlay (JSON, ``{"facts": {"acme.valuation":
{"value": "...", "computed": true}}}``) is applied on top. Overlay values
win, and overlaid facts are marked computed unless the entry says
otherwise. The resulting table is immutable for the run.
"""

import json
import logging
import os
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import jsonschema
import yaml

logger = logging.getLogger(__name__)


FACT_FILE_SCHEMA = {
    "type": "object",
    "required": ["entity", "facts"],
    "properties": {
        "entity": {"type": "string", "minLength": 1},
        "facts": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "computed": {"type": "boolean"},
                    "noCompute": {"type": "boolean"},
                },
            },
        },
    },
}


class FactStoreError(Exception):
    """Raised when a fact file cannot be loaded."""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


@dataclass(frozen=True)
class CanonicalFact:
    """One (entity, fact_id) value. value is None when not a display string."""
    entity: str
    fact_id: str
    value: Optional[str]
    as_of: Optional[str] = None
    computed: bool = False
    no_compute: bool = False

    @property
    def key(self) -> str:
        return f"{self.entity}.{self.fact_id}"


def _as_display_value(raw: Any) -> Optional[str]:
    if isinstance(raw, str):
        value = raw.strip()
        return value or None
    return None


def parse_fact_file(path: str) -> List[CanonicalFact]:
    """
    Load and validate one per-entity fact file.

    Raises:
        FactStoreError: On unreadable YAML or schema violations
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise FactStoreError(path, f"could not read YAML: {e}") from e

    try:
        jsonschema.validate(instance=data, schema=FACT_FILE_SCHEMA)
    except jsonschema.ValidationError as e:
        raise FactStoreError(path, f"schema violation: {e.message}") from e

    entity = data["entity"]
    facts = []
    for fact_id, spec in sorted(data["facts"].items()):
        as_of = spec.get("asOf")
        facts.append(CanonicalFact(
            entity=entity,
            fact_id=str(fact_id),
            value=_as_display_value(spec.get("value")),
            as_of=str(as_of) if as_of is not None else None,
            computed=bool(spec.get("computed", False)),
            no_compute=bool(spec.get("noCompute", False)),
        ))
    return facts


def load_overlay(path: str) -> Dict[str, Dict[str, Any]]:
    """
    Read the derived-values overlay.

    Returns:
        Mapping of "entity.factId" to overlay entry, empty if unusable
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring derived overlay {path}: {e}")
        return {}

    facts = data.get("facts") if isinstance(data, dict) else None
    if not isinstance(facts, dict):
        logger.warning(f"Ignoring derived overlay {path}: no 'facts' mapping")
        return {}
    return {k: v for k, v in facts.items() if isinstance(v, dict)}


class FactTable:
    """Immutable index of canonical facts keyed by (entity, fact_id)."""

    def __init__(self, facts: Optional[List[CanonicalFact]] = None,
                 load_errors: Optional[List[FactStoreError]] = None):
        index = {}
        for fact in facts or []:
            index[(fact.entity, fact.fact_id)] = fact
        self._facts: Mapping[Tuple[str, str], CanonicalFact] = MappingProxyType(index)
        self.load_errors: Tuple[FactStoreError, ...] = tuple(load_errors or ())

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[CanonicalFact]:
        for key in sorted(self._facts):
            yield self._facts[key]

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._facts

    def get(self, entity: str, fact_id: str) -> Optional[CanonicalFact]:
        return self._facts.get((entity, fact_id))

    def entities(self) -> List[str]:
        return sorted({entity for entity, _ in self._facts})

    def for_entity(self, entity: str) -> "FactTable":
        """A table restricted to one entity's facts."""
        return FactTable([f for f in self if f.entity == entity], list(self.load_errors))


def apply_overlay(facts: List[CanonicalFact], overlay: Dict[str, Dict[str, Any]]) -> List[CanonicalFact]:
    """Return facts with overlay values and computed flags applied."""
    result = []
    for fact in facts:
        entry = overlay.get(fact.key)
        if entry is None:
            result.append(fact)
            continue
        value = _as_display_value(entry.get("value"))
        result.append(replace(
            fact,
            value=value if value is not None else fact.value,
            computed=bool(entry.get("computed", True)) or fact.computed,
        ))
    return result


def load_fact_table(facts_dir: str, overlay_path: Optional[str] = None,
                    entity: Optional[str] = None) -> FactTable:
    """
    Load every fact file under facts_dir into a FactTable.

    Files that fail to parse are skipped with a warning and kept in
    FactTable.load_errors.

    Args:
        facts_dir: Directory of per-entity YAML files
        overlay_path: Optional derived-values JSON overlay
        entity: Restrict the table to one entity

    Returns:
        FactTable
    """
    facts: List[CanonicalFact] = []
    errors: List[FactStoreError] = []

    if not os.path.isdir(facts_dir):
        logger.warning(f"Facts directory not found: {facts_dir}")
        return FactTable()

    for name in sorted(os.listdir(facts_dir)):
        if not name.endswith((".yaml", ".yml")):
            continue
        path = os.path.join(facts_dir, name)
        try:
            facts.extend(parse_fact_file(path))
        except FactStoreError as e:
            logger.warning(f"Skipping fact file {path}: {e.message}")
            errors.append(e)

    if overlay_path and os.path.exists(overlay_path):
        facts = apply_overlay(facts, load_overlay(overlay_path))

    table = FactTable(facts, errors)
    if entity:
        table = table.for_entity(entity)

    logger.debug(f"Loaded {len(table)} facts from {facts_dir}")
    return table
