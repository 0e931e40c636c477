"""Unit tests for decoding analysis input from request payloads.

Tests cover:
- camelCase and snake_case keys
- Null numeric fields default to zero
- Nested children and screen wrappers
"""

import pytest

from edgy.core.analysis.models import Classification, Screen, VisualNode


class TestVisualNodeFromDict:

    def test_camel_case_keys(self):
        node = VisualNode.from_dict({
            "id": 12,
            "name": "Delete Button",
            "componentName": "Button",
            "componentProperties": {"Variant": "destructive"},
            "textContent": "Delete",
            "classification": {"elementType": "button", "confidence": 0.9, "shadcnComponent": "button"},
        })

        assert node.id == "12"
        assert node.type == "FRAME"
        assert node.visible is True
        assert node.component_properties == {"Variant": "destructive"}
        assert node.text_content == "Delete"
        assert node.classification.shadcn_component == "button"
        assert node.classification.confidence == pytest.approx(0.9)

    def test_null_confidence(self):
        node = VisualNode.from_dict({
            "id": "1",
            "name": "Save",
            "classification": {"elementType": "button", "confidence": None},
        })

        assert node.classification.element_type == "button"
        assert node.classification.confidence == 0.0

    def test_null_geometry(self):
        node = VisualNode.from_dict({"id": "1", "x": None, "width": None, "visible": None})

        assert (node.x, node.width) == (0.0, 0.0)
        assert node.visible is True

    def test_children_in_order(self):
        node = VisualNode.from_dict({
            "id": "root",
            "children": [{"id": "a", "children": [{"id": "a1"}]}, {"id": "b"}],
        })

        assert [n.id for n in node.walk()] == ["root", "a", "a1", "b"]


class TestScreenFromDict:

    def test_wraps_node_tree(self):
        screen = Screen.from_dict({
            "screen_id": "1:1",
            "name": "Login",
            "order": None,
            "node_tree": {"id": "1:1", "name": "Login"},
        })

        assert screen.order == 0
        assert screen.node_tree.name == "Login"


class TestClassificationFromDict:

    def test_snake_case_keys(self):
        classification = Classification.from_dict({"element_type": "input", "confidence": "0.5"})

        assert classification.element_type == "input"
        assert classification.confidence == 0.5
