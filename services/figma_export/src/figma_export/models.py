"""Data model for the node export pipeline.

Nodes and paints arrive from the design service as loosely typed JSON. They
are decoded once, at the fetch boundary, into the tagged unions below; every
key the models do not name is preserved as an extra so the enriched tree
serializes back with the full payload the consumer expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Discriminator, Field, Tag, TypeAdapter

from common.schemas import CamelModel


# ==============================================================================
# Paints
# ==============================================================================


def _paint_tag(value: Any) -> str:
    paint_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if paint_type == "IMAGE":
        return "image"
    if paint_type == "SOLID":
        return "solid"
    if isinstance(paint_type, str) and paint_type.startswith("GRADIENT_"):
        return "gradient"
    return "other"


class BasePaint(CamelModel):
    type: str = "UNKNOWN"
    visible: bool = True
    opacity: Optional[float] = None
    blend_mode: Optional[str] = Field(default=None, alias="blendMode")


class SolidPaint(BasePaint):
    color: Optional[Dict[str, float]] = None


class GradientPaint(BasePaint):
    gradient_stops: Optional[List[Dict[str, Any]]] = Field(default=None, alias="gradientStops")
    gradient_handle_positions: Optional[List[Dict[str, float]]] = Field(
        default=None, alias="gradientHandlePositions"
    )


class ImagePaint(BasePaint):
    """IMAGE paint; the last four fields are written by enrichment."""

    image_ref: Optional[str] = Field(default=None, alias="imageRef")
    scale_mode: Optional[str] = Field(default=None, alias="scaleMode")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_data: Optional[str] = Field(default=None, alias="imageData")
    oversized: Optional[bool] = None
    is_node_export: Optional[bool] = Field(default=None, alias="isNodeExport")


class OtherPaint(BasePaint):
    pass


Paint = Annotated[
    Union[
        Annotated[SolidPaint, Tag("solid")],
        Annotated[GradientPaint, Tag("gradient")],
        Annotated[ImagePaint, Tag("image")],
        Annotated[OtherPaint, Tag("other")],
    ],
    Discriminator(_paint_tag),
]


# ==============================================================================
# Nodes
# ==============================================================================


class NodeKind(str, Enum):
    """Variant tag for decoded nodes."""

    FRAME = "frame"
    COMPONENT = "component"
    TEXT = "text"
    VECTOR = "vector"
    BOOLEAN = "boolean"
    OTHER = "other"


_KIND_BY_TYPE: Dict[str, NodeKind] = {
    "FRAME": NodeKind.FRAME,
    "GROUP": NodeKind.FRAME,
    "SECTION": NodeKind.FRAME,
    "COMPONENT": NodeKind.COMPONENT,
    "COMPONENT_SET": NodeKind.COMPONENT,
    "INSTANCE": NodeKind.COMPONENT,
    "TEXT": NodeKind.TEXT,
    "VECTOR": NodeKind.VECTOR,
    "LINE": NodeKind.VECTOR,
    "STAR": NodeKind.VECTOR,
    "REGULAR_POLYGON": NodeKind.VECTOR,
    "ELLIPSE": NodeKind.VECTOR,
    "RECTANGLE": NodeKind.VECTOR,
    "BOOLEAN_OPERATION": NodeKind.BOOLEAN,
}


def node_kind(node_type: Optional[str]) -> NodeKind:
    return _KIND_BY_TYPE.get(node_type or "", NodeKind.OTHER)


def _node_tag(value: Any) -> str:
    node_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return node_kind(node_type).value


class Rect(CamelModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class BaseNode(CamelModel):
    """Fields shared by every node variant."""

    id: str
    name: str = ""
    type: str = "UNKNOWN"
    visible: bool = True
    children: List[NodeTree] = Field(default_factory=list)
    fills: List[Paint] = Field(default_factory=list)
    absolute_bounding_box: Optional[Rect] = Field(default=None, alias="absoluteBoundingBox")
    relative_transform: Optional[List[List[float]]] = Field(default=None, alias="relativeTransform")

    @property
    def kind(self) -> NodeKind:
        return node_kind(self.type)

    def _geometry(self, name: str) -> float:
        # REST documents carry absoluteBoundingBox; plugin-shaped payloads carry x/y/width/height
        if self.absolute_bounding_box is not None:
            return getattr(self.absolute_bounding_box, name)
        return float((self.model_extra or {}).get(name) or 0.0)

    @property
    def x(self) -> float:
        return self._geometry("x")

    @property
    def y(self) -> float:
        return self._geometry("y")

    @property
    def width(self) -> float:
        return self._geometry("width")

    @property
    def height(self) -> float:
        return self._geometry("height")

    def image_paints(self) -> List[ImagePaint]:
        return [paint for paint in self.fills if isinstance(paint, ImagePaint)]

    def walk(self) -> Iterator["BaseNode"]:
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


class FrameNode(BaseNode):
    background_color: Optional[Dict[str, float]] = Field(default=None, alias="backgroundColor")
    clips_content: Optional[bool] = Field(default=None, alias="clipsContent")
    layout_mode: Optional[str] = Field(default=None, alias="layoutMode")
    padding_left: Optional[float] = Field(default=None, alias="paddingLeft")
    padding_right: Optional[float] = Field(default=None, alias="paddingRight")
    padding_top: Optional[float] = Field(default=None, alias="paddingTop")
    padding_bottom: Optional[float] = Field(default=None, alias="paddingBottom")
    item_spacing: Optional[float] = Field(default=None, alias="itemSpacing")
    primary_axis_align_items: Optional[str] = Field(default=None, alias="primaryAxisAlignItems")
    counter_axis_align_items: Optional[str] = Field(default=None, alias="counterAxisAlignItems")


class ComponentNode(FrameNode):
    component_id: Optional[str] = Field(default=None, alias="componentId")
    component_properties: Optional[Dict[str, Any]] = Field(default=None, alias="componentProperties")


class TextNode(BaseNode):
    characters: str = ""
    style: Optional[Dict[str, Any]] = None
    character_style_overrides: Optional[List[int]] = Field(default=None, alias="characterStyleOverrides")
    style_override_table: Optional[Dict[str, Any]] = Field(default=None, alias="styleOverrideTable")


class VectorNode(BaseNode):
    fill_geometry: Optional[List[Dict[str, Any]]] = Field(default=None, alias="fillGeometry")
    stroke_geometry: Optional[List[Dict[str, Any]]] = Field(default=None, alias="strokeGeometry")
    vector_paths: Optional[List[Dict[str, Any]]] = Field(default=None, alias="vectorPaths")
    vector_network: Optional[Dict[str, Any]] = Field(default=None, alias="vectorNetwork")
    corner_radius: Optional[float] = Field(default=None, alias="cornerRadius")


class BooleanOperationNode(BaseNode):
    boolean_operation: Optional[str] = Field(default=None, alias="booleanOperation")


class GenericNode(BaseNode):
    pass


NodeTree = Annotated[
    Union[
        Annotated[FrameNode, Tag(NodeKind.FRAME.value)],
        Annotated[ComponentNode, Tag(NodeKind.COMPONENT.value)],
        Annotated[TextNode, Tag(NodeKind.TEXT.value)],
        Annotated[VectorNode, Tag(NodeKind.VECTOR.value)],
        Annotated[BooleanOperationNode, Tag(NodeKind.BOOLEAN.value)],
        Annotated[GenericNode, Tag(NodeKind.OTHER.value)],
    ],
    Discriminator(_node_tag),
]

for _model in (BaseNode, FrameNode, ComponentNode, TextNode, VectorNode, BooleanOperationNode, GenericNode):
    _model.model_rebuild()

_NODE_ADAPTER: TypeAdapter[BaseNode] = TypeAdapter(NodeTree)


def parse_node(payload: Dict[str, Any]) -> BaseNode:
    """Decode a raw node document into its variant class."""
    return _NODE_ADAPTER.validate_python(payload)


# ==============================================================================
# Image resolution
# ==============================================================================


class ImageKeyKind(str, Enum):
    REF = "ref"
    NODE = "node"
    URL = "url"


@dataclass(frozen=True)
class ImageKey:
    """Identity of something that needs image bytes.

    Resolution and caching key on this, never on a raw URL: signed URLs for
    the same logical image change between calls.
    """

    kind: ImageKeyKind
    value: str

    @classmethod
    def ref(cls, image_ref: str) -> "ImageKey":
        return cls(ImageKeyKind.REF, image_ref)

    @classmethod
    def node(cls, node_id: str) -> "ImageKey":
        return cls(ImageKeyKind.NODE, node_id)

    @classmethod
    def url(cls, raw_url: str) -> "ImageKey":
        return cls(ImageKeyKind.URL, raw_url)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


class ResolutionTier(str, Enum):
    """Strategies for building an image map, in fallback order."""

    BULK_FILLS = "bulk_fills"
    NODE_RASTER = "node_raster"
    DESCENDANT_RASTER = "descendant_raster"


class ImageResolutionMap:
    """ImageKey -> URL for one file within one export call."""

    def __init__(self) -> None:
        self._urls: Dict[ImageKey, str] = {}
        self._sources: Dict[ImageKey, ResolutionTier] = {}

    def record(self, key: ImageKey, url: str, tier: ResolutionTier) -> None:
        self._urls[key] = url
        self._sources[key] = tier

    def merge(self, other: "ImageResolutionMap") -> None:
        """Merge another map in; its entries overwrite ours."""
        for key, url in other._urls.items():
            self.record(key, url, other._sources[key])

    def url_for(self, key: ImageKey) -> Optional[str]:
        return self._urls.get(key)

    def source_of(self, key: ImageKey) -> Optional[ResolutionTier]:
        return self._sources.get(key)

    def tiers(self) -> set[ResolutionTier]:
        return set(self._sources.values())

    def keys(self) -> List[ImageKey]:
        return list(self._urls)

    def as_dict(self) -> Dict[str, str]:
        return {str(key): url for key, url in self._urls.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def __repr__(self) -> str:
        return f"ImageResolutionMap({len(self._urls)} entries)"


@dataclass(frozen=True)
class ByteCacheEntry:
    """Outcome of fetching one image; the default is a soft failure."""

    inline_data: Optional[str] = None
    oversized: bool = False


# ==============================================================================
# Requests / results
# ==============================================================================


class SlideRef(CamelModel):
    """One (file, node) pair requested for export."""

    file_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("figmaFileId", "fileId", "file_id"),
        serialization_alias="fileId",
    )
    node_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("figmaNodeId", "nodeId", "node_id"),
        serialization_alias="nodeId",
    )


class ExportNodesRequest(BaseModel):
    slides: List[SlideRef]


@dataclass
class ExportedNode:
    file_id: str
    node_id: str
    node: BaseNode
    image_url: Optional[str] = None
    image_data: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "fileId": self.file_id,
            "nodeId": self.node_id,
            "node": self.node.to_wire(),
            "imageUrl": self.image_url,
        }
        if self.image_data is not None:
            payload["imageData"] = self.image_data
        return payload


@dataclass
class ExportResult:
    nodes: List[ExportedNode] = field(default_factory=list)
    warning: Optional[str] = None
    success: bool = True

    @property
    def count(self) -> int:
        return len(self.nodes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "nodes": [node.to_dict() for node in self.nodes],
            "count": self.count,
        }
        if self.warning:
            payload["warning"] = self.warning
        return payload


__all__ = [
    "BaseNode",
    "BooleanOperationNode",
    "ByteCacheEntry",
    "ComponentNode",
    "ExportNodesRequest",
    "ExportResult",
    "ExportedNode",
    "FrameNode",
    "GenericNode",
    "GradientPaint",
    "ImageKey",
    "ImageKeyKind",
    "ImagePaint",
    "ImageResolutionMap",
    "NodeKind",
    "NodeTree",
    "OtherPaint",
    "Paint",
    "Rect",
    "ResolutionTier",
    "SlideRef",
    "SolidPaint",
    "TextNode",
    "VectorNode",
    "node_kind",
    "parse_node",
]
