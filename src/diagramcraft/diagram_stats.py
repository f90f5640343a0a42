from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class DiagramType(str, Enum):
    FLOWCHART = "Flowchart"
    SEQUENCE = "Sequence"
    CLASS = "Class"
    STATE = "State"
    ER_DIAGRAM = "ERDiagram"
    GANTT = "Gantt"
    PIE = "Pie"
    GIT = "Git"
    UNKNOWN = "Unknown"
    ERROR = "Error"


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    NOT_APPLICABLE = "NotApplicable"


# Checked top to bottom, first marker found anywhere in the text wins.
TYPE_RULES: List[Tuple[Tuple[str, ...], DiagramType]] = [
    (("flowchart", "graph"), DiagramType.FLOWCHART),
    (("sequenceDiagram",), DiagramType.SEQUENCE),
    (("classDiagram",), DiagramType.CLASS),
    (("stateDiagram",), DiagramType.STATE),
    (("erDiagram",), DiagramType.ER_DIAGRAM),
    (("gantt",), DiagramType.GANTT),
    (("pie",), DiagramType.PIE),
    (("gitGraph",), DiagramType.GIT),
]

HIGH_COMPLEXITY_LINES = 10
MEDIUM_COMPLEXITY_LINES = 5
ELEMENT_MARKERS = ("[", "(")


@dataclass(frozen=True)
class DiagramStats:
    type: DiagramType
    complexity: Complexity
    element_count: int

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "complexity": self.complexity.value,
            "element_count": self.element_count,
        }


def classify(text: str) -> DiagramStats:
    lines = _non_blank_lines(text)
    return DiagramStats(
        type=detect_diagram_type(text),
        complexity=_complexity_for(len(lines)),
        element_count=sum(1 for line in lines if any(m in line for m in ELEMENT_MARKERS)),
    )


def classify_failure() -> DiagramStats:
    return DiagramStats(
        type=DiagramType.ERROR,
        complexity=Complexity.NOT_APPLICABLE,
        element_count=0,
    )


def detect_diagram_type(text: str) -> DiagramType:
    source = text or ""
    for markers, diagram_type in TYPE_RULES:
        if any(marker in source for marker in markers):
            return diagram_type
    return DiagramType.UNKNOWN


def _complexity_for(line_count: int) -> Complexity:
    if line_count > HIGH_COMPLEXITY_LINES:
        return Complexity.HIGH
    if line_count > MEDIUM_COMPLEXITY_LINES:
        return Complexity.MEDIUM
    return Complexity.LOW


def _non_blank_lines(text: str) -> List[str]:
    return [line for line in (text or "").splitlines() if line.strip()]
