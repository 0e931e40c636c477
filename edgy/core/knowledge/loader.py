"""Knowledge base loader.

Reads declarative YAML documents from a knowledge directory:

    rules/*.yml                          rule documents (``name`` + ``rules``)
    flows/*.yml                          one FlowRule per document
    components/component-mappings.yml    category -> component mapping

Regex strings are compiled once here, case-insensitive, after stripping
inline flag groups such as ``(?i)``. Invalid patterns and unparsable
entries are logged and skipped; nothing is re-validated at match time.
The parsed result is cached per directory for the life of the process.

Usage:
    from edgy.core.knowledge.loader import load_knowledge
    kb = load_knowledge()
    kb.rules, kb.flow_rules, kb.mappings
"""

import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

import yaml

from ..exceptions import KnowledgeError
from .models import (
    ComponentMapping,
    ComponentRef,
    ConfidenceSignals,
    ExpectCondition,
    ExpectedScreen,
    FindingTemplate,
    FlowRule,
    KnowledgeBase,
    MappedComponent,
    Rule,
    RuleExclusions,
    RuleExpectations,
    RuleTriggers,
)

logger = logging.getLogger(__name__)

_INLINE_FLAGS = re.compile(r"\(\?[imsx]+\)")
_SEVERITIES = ("critical", "warning", "info")

_cache: Dict[str, KnowledgeBase] = {}
_cache_lock = threading.Lock()


# ── Regex helpers ─────────────────────────────────────────────────────


def compile_pattern(raw: str) -> Optional[Pattern]:
    """Compile a knowledge-base regex, or return None if it is invalid."""
    try:
        return re.compile(_INLINE_FLAGS.sub("", str(raw)), re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Skipping invalid regex {raw!r}: {e}")
        return None


def _compile_all(raw_patterns: Optional[Iterable[Any]]) -> Tuple[Pattern, ...]:
    compiled = []
    for raw in raw_patterns or ():
        pattern = compile_pattern(raw)
        if pattern is not None:
            compiled.append(pattern)
    return tuple(compiled)


def _strings(values: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    return tuple(str(v) for v in values or ())


def derive_category(document_name: Optional[str], file_stem: str) -> str:
    """Lower-kebab-case the document name, falling back to the file stem."""
    if document_name:
        return re.sub(r"\s+", "-", str(document_name).strip().lower())
    return file_stem


# ── Parsing ───────────────────────────────────────────────────────────


def _parse_components(raw: Optional[List[dict]]) -> Tuple[ComponentRef, ...]:
    components = []
    for item in raw or []:
        if not isinstance(item, dict) or "shadcn_id" not in item:
            continue
        components.append(
            ComponentRef(
                shadcn_id=str(item["shadcn_id"]),
                label=str(item.get("label") or item["shadcn_id"]),
                variant=item.get("variant"),
            )
        )
    return tuple(components)


def _parse_conditions(raw: Optional[List[dict]]) -> Optional[Tuple[ExpectCondition, ...]]:
    if raw is None:
        return None
    conditions = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        props = item.get("with_properties") or {}
        conditions.append(
            ExpectCondition(
                component_names=_strings(item.get("component_names")),
                layer_name_patterns=_compile_all(item.get("layer_name_patterns")),
                with_properties=tuple((str(k), str(v)) for k, v in props.items()),
            )
        )
    return tuple(conditions)


def _parse_rule(raw: dict, category: str) -> Rule:
    triggers = raw.get("triggers") or {}
    expects = raw.get("expects") or {}
    recommendation = raw.get("recommendation") or {}
    if isinstance(recommendation, str):
        recommendation = {"message": recommendation}

    exclude = None
    if raw.get("exclude"):
        ex = raw["exclude"]
        exclude = RuleExclusions(
            screen_name_patterns=_compile_all(ex.get("screen_name_patterns")),
            parent_name_patterns=_compile_all(ex.get("parent_name_patterns")),
            parent_component_names=_strings(ex.get("parent_component_names")),
            ancestor_element_types=tuple(
                s.lower() for s in _strings(ex.get("ancestor_element_types"))
            ),
        )

    signals = ConfidenceSignals()
    if raw.get("confidence_signals"):
        cs = raw["confidence_signals"]
        signals = ConfidenceSignals(
            name_match=float(cs.get("name_match", 0.5)),
            component_match=float(cs.get("component_match", 0.3)),
            visual_match=float(cs.get("visual_match", 0.2)),
            threshold=float(cs.get("threshold", 0.4)),
        )

    template = None
    if raw.get("finding_template"):
        ft = raw["finding_template"]
        template = FindingTemplate(
            title=str(ft.get("title", raw.get("name", ""))),
            description=str(ft.get("description", raw.get("description", ""))),
            recommendation=str(ft.get("recommendation", recommendation.get("message", ""))),
        )

    severity = str(raw.get("severity", "warning")).lower()
    if severity not in _SEVERITIES:
        raise ValueError(f"unknown severity '{severity}'")

    return Rule(
        id=str(raw["id"]),
        name=str(raw.get("name", raw["id"])),
        category=str(raw.get("category") or category),
        severity=severity,
        description=str(raw.get("description", "")),
        triggers=RuleTriggers(
            pattern_types=_strings(triggers.get("pattern_types")),
            component_names=_strings(triggers.get("component_names")),
            layer_name_patterns=_compile_all(triggers.get("layer_name_patterns")),
        ),
        expects=RuleExpectations(
            in_screen=_parse_conditions(expects.get("in_screen")),
            in_flow=_parse_conditions(expects.get("in_flow")),
        ),
        recommendation_message=str(recommendation.get("message", "")),
        recommendation_components=_parse_components(recommendation.get("components")),
        exclude=exclude,
        confidence_signals=signals,
        finding_template=template,
        annotation_target=raw.get("annotation_target"),
    )


def _parse_flow_rule(raw: dict) -> FlowRule:
    screens = []
    for item in raw.get("expected_screens") or []:
        detection = item.get("detection") or {}
        screens.append(
            ExpectedScreen(
                id=str(item["id"]),
                name=str(item.get("name", item["id"])),
                description=str(item.get("description", "")),
                required=bool(item.get("required", False)),
                severity=item.get("severity"),
                layer_name_patterns=_compile_all(detection.get("layer_name_patterns")),
                components=_parse_components(item.get("components")),
            )
        )
    return FlowRule(
        flow_type=str(raw["flow_type"]),
        name=str(raw.get("name", raw["flow_type"])),
        description=str(raw.get("description", "")),
        expected_screens=tuple(screens),
    )


def _parse_mapped(raw: Optional[List[dict]]) -> Tuple[MappedComponent, ...]:
    return tuple(
        MappedComponent(
            shadcn_id=str(item["shadcn_id"]),
            usage=str(item.get("usage", "")),
            variant=item.get("variant"),
        )
        for item in raw or []
        if isinstance(item, dict) and "shadcn_id" in item
    )


# ── File loading ──────────────────────────────────────────────────────


def _read_yaml(path: Path) -> Optional[Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Skipping unreadable knowledge file {path}: {e}")
        return None


def _yaml_files(directory: Path) -> List[Path]:
    return sorted(list(directory.glob("*.yml")) + list(directory.glob("*.yaml")), key=lambda p: p.name)


def load_rules(rules_dir: Path) -> List[Rule]:
    """Parse every rule document in ``rules_dir`` (sorted by file name)."""
    rules: List[Rule] = []
    for path in _yaml_files(rules_dir):
        doc = _read_yaml(path)
        if not isinstance(doc, dict):
            continue
        category = derive_category(doc.get("name"), path.stem)
        for raw in doc.get("rules") or []:
            try:
                rules.append(_parse_rule(raw, category))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                rule_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping rule {rule_id!r} in {path.name}: {e}")
    return rules


def load_flow_rules(flows_dir: Path) -> List[FlowRule]:
    flow_rules: List[FlowRule] = []
    for path in _yaml_files(flows_dir):
        doc = _read_yaml(path)
        if not isinstance(doc, dict):
            continue
        try:
            flow_rules.append(_parse_flow_rule(doc))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping flow rule in {path.name}: {e}")
    return flow_rules


def load_mappings(mappings_path: Path) -> Dict[str, ComponentMapping]:
    mappings: Dict[str, ComponentMapping] = {}
    if not mappings_path.exists():
        return mappings
    doc = _read_yaml(mappings_path)
    if not isinstance(doc, dict):
        return mappings
    for category, entry in (doc.get("mappings") or {}).items():
        if not isinstance(entry, dict):
            continue
        mappings[str(category)] = ComponentMapping(
            category=str(category),
            description=str(entry.get("description", "")),
            primary=_parse_mapped(entry.get("primary")),
            supporting=_parse_mapped(entry.get("supporting")),
        )
    return mappings


def load_knowledge(knowledge_dir: Optional[str] = None) -> KnowledgeBase:
    """Load (or return the cached) knowledge base for a directory.

    Args:
        knowledge_dir: Directory containing ``rules/``, ``flows/`` and
            ``components/``. Defaults to the configured knowledge dir.

    Raises:
        KnowledgeError: If the directory does not exist.
    """
    if knowledge_dir is None:
        from ..config import get_settings
        knowledge_dir = get_settings().knowledge_dir

    root = Path(knowledge_dir).resolve()
    key = str(root)

    with _cache_lock:
        if key in _cache:
            return _cache[key]

        if not root.is_dir():
            raise KnowledgeError(f"Knowledge directory not found: {root}")

        kb = KnowledgeBase(
            rules=tuple(load_rules(root / "rules")),
            flow_rules=tuple(load_flow_rules(root / "flows")),
            mappings=load_mappings(root / "components" / "component-mappings.yml"),
        )
        _cache[key] = kb

    logger.info(
        f"Loaded knowledge base from {root}: {len(kb.rules)} rules, "
        f"{len(kb.flow_rules)} flow rules, {len(kb.mappings)} mappings"
    )
    return kb


def clear_knowledge_cache() -> None:
    """Forget every cached knowledge base."""
    with _cache_lock:
        _cache.clear()
