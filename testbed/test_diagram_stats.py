import pytest

from src.diagramcraft.diagram_stats import (
    Complexity,
    DiagramType,
    TYPE_RULES,
    classify,
    classify_failure,
    detect_diagram_type,
)


def test_simple_flowchart_is_low_complexity_without_elements():
    stats = classify("flowchart TB\nA-->B")
    assert stats.type == DiagramType.FLOWCHART
    assert stats.complexity == Complexity.LOW
    assert stats.element_count == 0


def test_long_sequence_diagram_is_high_complexity():
    lines = ["sequenceDiagram"] + [f"    A->>B: message {i}" for i in range(11)]
    stats = classify("\n".join(lines))
    assert stats.type == DiagramType.SEQUENCE
    assert stats.complexity == Complexity.HIGH


@pytest.mark.parametrize(
    "line_count, expected",
    [
        (1, Complexity.LOW),
        (5, Complexity.LOW),
        (6, Complexity.MEDIUM),
        (10, Complexity.MEDIUM),
        (11, Complexity.HIGH),
    ],
)
def test_complexity_thresholds_count_non_blank_lines(line_count, expected):
    text = "\n\n".join(["graph TD"] + ["A-->B"] * (line_count - 1)) + "\n   \n"
    assert classify(text).complexity == expected


def test_element_count_counts_lines_with_brackets_or_parens():
    text = (
        "flowchart TB\n"
        "A[Sensing Layer] --> B[Edge Layer]\n"
        "B --> C(Round)\n"
        "C --> D\n"
        "\n"
    )
    assert classify(text).element_count == 2


@pytest.mark.parametrize(
    "text, expected",
    [
        ("graph LR\nA-->B", DiagramType.FLOWCHART),
        ("sequenceDiagram\nA->>B: hi", DiagramType.SEQUENCE),
        ("classDiagram\nclass A", DiagramType.CLASS),
        ("stateDiagram-v2\n[*] --> A", DiagramType.STATE),
        ("erDiagram\nA ||--o{ B : has", DiagramType.ER_DIAGRAM),
        ("gantt\ntitle Plan", DiagramType.GANTT),
        ('pie title Pets\n"Dogs" : 3', DiagramType.PIE),
        ("gitGraph\ncommit", DiagramType.GIT),
        ("mindmap\n  root", DiagramType.UNKNOWN),
        ("", DiagramType.UNKNOWN),
    ],
)
def test_detect_diagram_type_by_marker(text, expected):
    assert detect_diagram_type(text) == expected


def test_first_matching_rule_wins():
    # "graph" appears in a sequence diagram message, flowchart rule is checked first.
    text = "sequenceDiagram\nA->>B: draw a graph"
    assert detect_diagram_type(text) == DiagramType.FLOWCHART
    assert TYPE_RULES[0][1] == DiagramType.FLOWCHART


def test_failure_stats_are_error_not_applicable_zero():
    stats = classify_failure()
    assert stats.to_dict() == {"type": "Error", "complexity": "NotApplicable", "element_count": 0}
