from src.diagramcraft.diagram_stats import DiagramType, detect_diagram_type
from src.diagramcraft.templates import (
    DEFAULT_DIAGRAM,
    get_starter_template,
    list_starter_templates,
)


def test_default_diagram_is_a_flowchart():
    assert detect_diagram_type(DEFAULT_DIAGRAM) == DiagramType.FLOWCHART


def test_starter_templates_have_metadata_and_code():
    templates = list_starter_templates()
    assert templates
    for template in templates:
        assert template["name"]
        assert template["description"]
        assert get_starter_template(template["id"]).strip()


def test_unknown_template_returns_empty_code():
    assert get_starter_template("missing") == ""
    assert get_starter_template("") == ""


def test_each_starter_template_is_classified_as_a_known_type():
    for template in list_starter_templates():
        code = get_starter_template(template["id"])
        assert detect_diagram_type(code) not in {DiagramType.UNKNOWN, DiagramType.ERROR}
