"""Data contracts for the knowledge base.

Rules, flow rules and component mappings are loaded once and shared by
reference between concurrent analyses, so every type here is frozen and
uses tuples for its sequences. Regex fields hold patterns compiled at
load time.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Tuple


@dataclass(frozen=True)
class ComponentRef:
    """A suggested UI component attached to a rule or expected screen."""
    shadcn_id: str
    label: str
    variant: Optional[str] = None


@dataclass(frozen=True)
class RuleTriggers:
    pattern_types: Tuple[str, ...] = ()
    component_names: Tuple[str, ...] = ()
    layer_name_patterns: Tuple[Pattern, ...] = ()


@dataclass(frozen=True)
class ExpectCondition:
    """One way an expected companion state can be present in a tree."""
    component_names: Tuple[str, ...] = ()
    layer_name_patterns: Tuple[Pattern, ...] = ()
    with_properties: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class RuleExpectations:
    # None means the rule declares no expectation at that scope.
    in_screen: Optional[Tuple[ExpectCondition, ...]] = None
    in_flow: Optional[Tuple[ExpectCondition, ...]] = None


@dataclass(frozen=True)
class RuleExclusions:
    screen_name_patterns: Tuple[Pattern, ...] = ()
    parent_name_patterns: Tuple[Pattern, ...] = ()
    parent_component_names: Tuple[str, ...] = ()
    ancestor_element_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfidenceSignals:
    """Weights for multi-signal rule confidence scoring."""
    name_match: float = 0.5
    component_match: float = 0.3
    visual_match: float = 0.2
    threshold: float = 0.4


DEFAULT_CONFIDENCE_SIGNALS = ConfidenceSignals()


@dataclass(frozen=True)
class FindingTemplate:
    title: str
    description: str
    recommendation: str


@dataclass(frozen=True)
class Rule:
    """A declarative trigger -> expectation -> finding description."""
    id: str
    name: str
    category: str
    severity: str
    description: str
    triggers: RuleTriggers
    expects: RuleExpectations
    recommendation_message: str
    recommendation_components: Tuple[ComponentRef, ...] = ()
    exclude: Optional[RuleExclusions] = None
    confidence_signals: ConfidenceSignals = DEFAULT_CONFIDENCE_SIGNALS
    finding_template: Optional[FindingTemplate] = None
    annotation_target: Optional[str] = None  # "element" | "screen"


@dataclass(frozen=True)
class ExpectedScreen:
    id: str
    name: str
    description: str
    required: bool = False
    severity: Optional[str] = None
    layer_name_patterns: Tuple[Pattern, ...] = ()
    components: Tuple[ComponentRef, ...] = ()


@dataclass(frozen=True)
class FlowRule:
    """The screen set a complete flow of one archetype is expected to have."""
    flow_type: str
    name: str
    description: str
    expected_screens: Tuple[ExpectedScreen, ...] = ()


@dataclass(frozen=True)
class MappedComponent:
    shadcn_id: str
    usage: str
    variant: Optional[str] = None


@dataclass(frozen=True)
class ComponentMapping:
    """Category-level component recommendations."""
    category: str
    description: str = ""
    primary: Tuple[MappedComponent, ...] = ()
    supporting: Tuple[MappedComponent, ...] = ()


@dataclass(frozen=True)
class KnowledgeBase:
    rules: Tuple[Rule, ...] = ()
    flow_rules: Tuple[FlowRule, ...] = ()
    mappings: Dict[str, ComponentMapping] = field(default_factory=dict)

    def flow_rule_for(self, flow_type: str) -> Optional[FlowRule]:
        for flow_rule in self.flow_rules:
            if flow_rule.flow_type == flow_type:
                return flow_rule
        return None
