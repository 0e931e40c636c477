"""Data contracts for the analysis engine.

Inputs (VisualNode, Screen, AnalysisInput) arrive as camelCase JSON from
the design tool and are parsed with ``from_dict``. Outputs (Finding,
AnalysisOutput, ...) serialize with ``to_dict`` into the snake_case
report shape streamed to clients.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..knowledge.models import Rule

SEVERITIES = ("critical", "warning", "info")


class PatternType(Enum):
    """Closed set of structural roles the pattern detector assigns."""
    FORM = "form"
    FORM_FIELD = "form-field"
    LIST = "list"
    DATA_DISPLAY = "data-display"
    BUTTON = "button"
    DESTRUCTIVE_ACTION = "destructive-action"
    NAVIGATION = "navigation"
    SEARCH = "search"
    MEDIA = "media"
    MODAL = "modal"


# ── Input ─────────────────────────────────────────────────────────────


@dataclass
class Classification:
    """Upstream per-node element classification."""
    element_type: str
    confidence: float
    variant: Optional[str] = None
    shadcn_component: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Classification":
        return cls(
            element_type=data.get("elementType") or data.get("element_type") or "",
            confidence=float(data.get("confidence") or 0.0),
            variant=data.get("variant"),
            shadcn_component=data.get("shadcnComponent") or data.get("shadcn_component"),
        )


@dataclass
class VisualNode:
    """One element in a screen's visual tree.

    Recursive structure: each node holds its ordered children.
    """
    id: str
    name: str
    type: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    visible: bool = True
    component_name: Optional[str] = None
    component_properties: Dict[str, Any] = field(default_factory=dict)
    text_content: Optional[str] = None
    fills: List[Any] = field(default_factory=list)
    strokes: List[Any] = field(default_factory=list)
    classification: Optional[Classification] = None
    children: List["VisualNode"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisualNode":
        classification = data.get("classification")
        visible = data.get("visible")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            type=data.get("type") or "FRAME",
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
            visible=True if visible is None else bool(visible),
            component_name=data.get("componentName") or data.get("component_name"),
            component_properties=(
                data.get("componentProperties") or data.get("component_properties") or {}
            ),
            text_content=data.get("textContent") or data.get("text_content"),
            fills=list(data.get("fills") or []),
            strokes=list(data.get("strokes") or []),
            classification=Classification.from_dict(classification) if classification else None,
            children=[cls.from_dict(c) for c in data.get("children") or []],
        )

    def walk(self):
        """Yield this node and every descendant, depth-first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass
class Screen:
    """One design surface with its root node."""
    screen_id: str
    name: str
    node_tree: VisualNode
    order: int = 0
    thumbnail_base64: Optional[str] = None
    width: float = 0.0
    height: float = 0.0
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Screen":
        return cls(
            screen_id=str(data["screen_id"]),
            name=data.get("name") or "",
            node_tree=VisualNode.from_dict(data["node_tree"]),
            order=int(data.get("order") or 0),
            thumbnail_base64=data.get("thumbnail_base64"),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
        )


@dataclass
class AnalysisInput:
    analysis_id: str
    file_name: str
    screens: List[Screen]
    timestamp: Optional[str] = None


# ── Intermediate ──────────────────────────────────────────────────────


@dataclass
class DetectedPattern:
    type: PatternType
    nodes: List[VisualNode]
    confidence: str  # "high" | "medium" | "low"
    context: str = ""


@dataclass
class TriggeredRule:
    rule: Rule
    matched_nodes: List[VisualNode]
    confidence: float
    pattern: Optional[DetectedPattern] = None


@dataclass
class UnmetExpectation:
    rule: Rule
    matched_nodes: List[VisualNode]
    reason: str


@dataclass
class DetectedFlowType:
    type: str
    confidence: str
    trigger_screens: List[str]
    trigger_patterns: List[str]
    score: float


class IdCounters:
    """Per-run id sequences so concurrent analyses never share numbering."""

    def __init__(self):
        self.finding = 0
        self.missing_screen = 0
        self.flow_finding = 0
        self.ai_finding = 0

    def next_finding_id(self) -> str:
        self.finding += 1
        return f"finding-{self.finding}"

    def next_missing_screen_id(self) -> str:
        self.missing_screen += 1
        return f"mf-{self.missing_screen}"

    def next_flow_finding_id(self) -> str:
        self.flow_finding += 1
        return f"ff-{self.flow_finding:03d}"

    def next_ai_finding_id(self) -> str:
        self.ai_finding += 1
        return f"ai-finding-{self.ai_finding}"


# ── Output ────────────────────────────────────────────────────────────


@dataclass
class ComponentSuggestion:
    name: str
    shadcn_id: str
    description: str = ""
    variant: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.shadcn_id}-{self.variant or ''}"

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "shadcn_id": self.shadcn_id, "description": self.description}
        if self.variant:
            data["variant"] = self.variant
        return data


@dataclass
class Recommendation:
    message: str
    components: List[ComponentSuggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass
class AffectedArea:
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class Finding:
    """A user-visible gap report attached to one screen."""
    id: str
    rule_id: str
    category: str
    severity: str
    title: str
    description: str
    recommendation: Recommendation
    affected_nodes: List[str] = field(default_factory=list)
    affected_area: Optional[AffectedArea] = None
    annotation_target: Optional[str] = None
    ai_generated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "rule_id": self.rule_id,
            "category": self.category,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "affected_nodes": list(self.affected_nodes),
            "recommendation": self.recommendation.to_dict(),
        }
        if self.affected_area is not None:
            data["affected_area"] = self.affected_area.to_dict()
        if self.annotation_target:
            data["annotation_target"] = self.annotation_target
        if self.ai_generated:
            data["ai_generated"] = True
        return data


@dataclass
class FlowFinding:
    """A gap that spans the whole screen set rather than one screen."""
    id: str
    rule_id: str
    category: str
    severity: str
    title: str
    description: str
    recommendation: Recommendation
    affected_screens: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "category": self.category,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "affected_screens": list(self.affected_screens),
            "recommendation": self.recommendation.to_dict(),
        }


@dataclass
class MissingScreen:
    id: str
    name: str
    description: str


@dataclass
class Placeholder:
    suggested_name: str
    width: int = 375
    height: int = 812


@dataclass
class MissingScreenFinding:
    id: str
    flow_type: str
    flow_name: str
    severity: str
    missing_screen: MissingScreen
    recommendation: Recommendation
    placeholder: Placeholder

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "flow_type": self.flow_type,
            "flow_name": self.flow_name,
            "severity": self.severity,
            "missing_screen": {
                "id": self.missing_screen.id,
                "name": self.missing_screen.name,
                "description": self.missing_screen.description,
            },
            "recommendation": self.recommendation.to_dict(),
            "placeholder": {
                "suggested_name": self.placeholder.suggested_name,
                "width": self.placeholder.width,
                "height": self.placeholder.height,
            },
        }


@dataclass
class ScreenResult:
    screen_id: str
    name: str
    findings: List[Finding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "screen_id": self.screen_id,
            "name": self.name,
            "findings": [f.to_dict() for f in self.findings],
        }


@dataclass
class Summary:
    screens_analyzed: int
    total_findings: int = 0
    critical: int = 0
    warning: int = 0
    info: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "screens_analyzed": self.screens_analyzed,
            "total_findings": self.total_findings,
            "critical": self.critical,
            "warning": self.warning,
            "info": self.info,
        }


def build_summary(
    screens_analyzed: int,
    screens: List[ScreenResult],
    flow_findings: List[FlowFinding],
    missing_screen_findings: List[MissingScreenFinding],
) -> Summary:
    """Count every finding from scratch, by severity."""
    severities = [f.severity for s in screens for f in s.findings]
    severities += [f.severity for f in flow_findings]
    severities += [f.severity for f in missing_screen_findings]
    return Summary(
        screens_analyzed=screens_analyzed,
        total_findings=len(severities),
        critical=severities.count("critical"),
        warning=severities.count("warning"),
        info=severities.count("info"),
    )


@dataclass
class AnalysisOutput:
    """Full report for one job."""
    analysis_id: str
    completed_at: str
    summary: Summary
    screens: List[ScreenResult] = field(default_factory=list)
    flow_findings: List[FlowFinding] = field(default_factory=list)
    missing_screen_findings: List[MissingScreenFinding] = field(default_factory=list)
    llm_enhanced: Optional[bool] = None
    llm_error: Optional[str] = None

    def finding_ids(self) -> List[str]:
        ids = [f.id for s in self.screens for f in s.findings]
        ids += [f.id for f in self.flow_findings]
        ids += [f.id for f in self.missing_screen_findings]
        return ids

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "analysis_id": self.analysis_id,
            "completed_at": self.completed_at,
            "summary": self.summary.to_dict(),
            "screens": [s.to_dict() for s in self.screens],
            "flow_findings": [f.to_dict() for f in self.flow_findings],
            "missing_screen_findings": [f.to_dict() for f in self.missing_screen_findings],
        }
        if self.llm_enhanced is not None:
            data["llm_enhanced"] = self.llm_enhanced
        if self.llm_error:
            data["llm_error"] = self.llm_error
        return data
