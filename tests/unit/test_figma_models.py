from __future__ import annotations

import pytest
from pydantic import ValidationError

from figma_export.models import (
    ComponentNode,
    ExportedNode,
    ExportResult,
    FrameNode,
    GenericNode,
    GradientPaint,
    ImageKey,
    ImagePaint,
    ImageResolutionMap,
    NodeKind,
    OtherPaint,
    ResolutionTier,
    SlideRef,
    SolidPaint,
    TextNode,
    VectorNode,
    parse_node,
)


def test_parse_node_selects_variant_per_type():
    node = parse_node(
        {
            "id": "1:1",
            "type": "FRAME",
            "layoutMode": "VERTICAL",
            "children": [
                {"id": "1:2", "type": "TEXT", "characters": "Title", "style": {"fontSize": 48}},
                {"id": "1:3", "type": "RECTANGLE", "cornerRadius": 8},
                {"id": "1:4", "type": "INSTANCE", "componentId": "9:9"},
                {"id": "1:5", "type": "STICKY"},
            ],
        }
    )

    assert isinstance(node, FrameNode)
    assert node.layout_mode == "VERTICAL"
    text, rect, instance, sticky = node.children
    assert isinstance(text, TextNode) and text.characters == "Title"
    assert isinstance(rect, VectorNode) and rect.corner_radius == 8
    assert isinstance(instance, ComponentNode) and instance.component_id == "9:9"
    assert isinstance(sticky, GenericNode)
    assert [child.kind for child in node.children] == [
        NodeKind.TEXT,
        NodeKind.VECTOR,
        NodeKind.COMPONENT,
        NodeKind.OTHER,
    ]


def test_parse_paints_by_type():
    node = parse_node(
        {
            "id": "1",
            "type": "RECTANGLE",
            "fills": [
                {"type": "SOLID", "color": {"r": 1, "g": 0, "b": 0, "a": 1}},
                {"type": "GRADIENT_LINEAR", "gradientStops": []},
                {"type": "IMAGE", "imageRef": "abc", "scaleMode": "FILL"},
                {"type": "EMOJI"},
            ],
        }
    )

    solid, gradient, image, other = node.fills
    assert isinstance(solid, SolidPaint)
    assert isinstance(gradient, GradientPaint)
    assert isinstance(image, ImagePaint) and image.image_ref == "abc"
    assert isinstance(other, OtherPaint)
    assert node.image_paints() == [image]


def test_unknown_fields_survive_serialization():
    payload = {
        "id": "1",
        "type": "RECTANGLE",
        "strokes": [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0}}],
        "effects": [],
        "fills": [{"type": "IMAGE", "imageRef": "abc", "imageTransform": [[1, 0, 0], [0, 1, 0]]}],
        "absoluteBoundingBox": {"x": 1, "y": 2, "width": 3, "height": 4},
    }

    wire = parse_node(payload).to_wire()

    assert wire["strokes"] == payload["strokes"]
    assert wire["effects"] == []
    assert wire["fills"][0]["imageRef"] == "abc"
    assert wire["fills"][0]["imageTransform"] == [[1, 0, 0], [0, 1, 0]]
    assert wire["absoluteBoundingBox"] == {"x": 1.0, "y": 2.0, "width": 3.0, "height": 4.0}
    assert "imageData" not in wire["fills"][0]


def test_geometry_reads_bounding_box_or_plain_fields():
    boxed = parse_node({"id": "1", "type": "FRAME", "absoluteBoundingBox": {"x": 5, "y": 6, "width": 70, "height": 80}})
    plain = parse_node({"id": "2", "type": "FRAME", "x": 10, "y": 20, "width": 1920, "height": 1080})

    assert (boxed.x, boxed.y, boxed.width, boxed.height) == (5, 6, 70, 80)
    assert (plain.x, plain.y, plain.width, plain.height) == (10, 20, 1920, 1080)


def test_walk_is_depth_first():
    node = parse_node(
        {
            "id": "a",
            "type": "FRAME",
            "children": [
                {"id": "b", "type": "GROUP", "children": [{"id": "c", "type": "TEXT"}]},
                {"id": "d", "type": "VECTOR"},
            ],
        }
    )

    assert [item.id for item in node.walk()] == ["a", "b", "c", "d"]


def test_image_keys_are_distinct_per_kind():
    assert ImageKey.ref("1:2") != ImageKey.node("1:2")
    assert ImageKey.ref("abc") == ImageKey.ref("abc")
    assert str(ImageKey.node("1:2")) == "node:1:2"
    assert str(ImageKey.url("https://x/y.png")) == "url:https://x/y.png"


def test_resolution_map_merge_prefers_later_writer():
    first = ImageResolutionMap()
    first.record(ImageKey.ref("abc"), "https://old", ResolutionTier.BULK_FILLS)
    first.record(ImageKey.ref("keep"), "https://keep", ResolutionTier.BULK_FILLS)
    second = ImageResolutionMap()
    second.record(ImageKey.ref("abc"), "https://new", ResolutionTier.DESCENDANT_RASTER)

    first.merge(second)

    assert first.url_for(ImageKey.ref("abc")) == "https://new"
    assert first.source_of(ImageKey.ref("abc")) is ResolutionTier.DESCENDANT_RASTER
    assert first.url_for(ImageKey.ref("keep")) == "https://keep"
    assert len(first) == 2
    assert first.as_dict() == {"ref:abc": "https://new", "ref:keep": "https://keep"}


def test_slide_ref_accepts_request_aliases():
    assert SlideRef.model_validate({"figmaFileId": "F", "figmaNodeId": "1:2"}).file_id == "F"
    assert SlideRef.model_validate({"fileId": "F", "nodeId": "1:2"}).node_id == "1:2"

    with pytest.raises(ValidationError):
        SlideRef.model_validate({"figmaFileId": "", "figmaNodeId": "1:2"})


def test_export_result_wire_shape():
    node = parse_node({"id": "1:2", "type": "FRAME"})
    result = ExportResult(nodes=[ExportedNode(file_id="F", node_id="1:2", node=node)])

    payload = result.to_dict()

    assert payload["success"] is True
    assert payload["count"] == 1
    assert "warning" not in payload
    entry = payload["nodes"][0]
    assert entry["fileId"] == "F" and entry["nodeId"] == "1:2"
    assert entry["imageUrl"] is None
    assert "imageData" not in entry
    assert entry["node"]["type"] == "FRAME"
