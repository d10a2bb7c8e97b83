"""
Figmagate Simplifier - Flatten raw Figma documents for agent consumption.

The raw REST payload repeats the same paint, text style and layout objects on
every node that uses them. ``simplify()`` walks the node tree once, moves each
distinct value into ``globalVars["styles"]`` under a content-derived key and
leaves only the key on the node.

Pure functions only: no network, no disk, the input is never mutated.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# prefixes of the shared variable keys
STYLE = "style"
FILL = "fill"
STROKE = "stroke"
EFFECT = "effect"
LAYOUT = "layout"

GRADIENT_TYPES = ("GRADIENT_LINEAR", "GRADIENT_RADIAL", "GRADIENT_ANGULAR", "GRADIENT_DIAMOND")


@dataclass
class SimplifiedDesign:
    """Flattened view of a Figma file or a set of its nodes."""

    name: str
    last_modified: str = ""
    thumbnail_url: str = ""
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    global_vars: Dict[str, Dict[str, Any]] = field(default_factory=lambda: {"styles": {}})

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lastModified": self.last_modified,
            "thumbnailUrl": self.thumbnail_url,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.metadata(), "nodes": self.nodes, "globalVars": self.global_vars}


KEY_DIGITS = 8


def var_key(prefix: str, value: Any, digits: int = KEY_DIGITS) -> str:
    """Stable key for a shared value: prefix plus a hash of its canonical JSON."""
    canonical = json.dumps(value, sort_keys=True, separators=(",", ":"))
    return f"{prefix}_{hashlib.sha256(canonical.encode()).hexdigest()[:digits].upper()}"


def find_or_create_var(global_vars: Dict[str, Dict[str, Any]], value: Any, prefix: str) -> str:
    """
    Store ``value`` in the shared map and return its key.

    If the short key already holds a different value, the key is lengthened
    until it is free or holds this same value.
    """
    styles = global_vars["styles"]
    digits = KEY_DIGITS
    while True:
        key = var_key(prefix, value, digits)
        existing = styles.setdefault(key, value)
        if existing == value or digits >= 64:
            return key
        digits *= 2


# ── Entry point ───────────────────────────────────────────────────────────


def simplify(raw: Dict[str, Any], max_depth: Optional[int] = None) -> SimplifiedDesign:
    """
    Build a SimplifiedDesign from a ``GET /files`` or ``GET /files/:key/nodes`` payload.

    Parameters
    ----------
    raw : decoded JSON response
    max_depth : number of node levels to keep; 1 keeps only the top level,
        ``None`` keeps everything
    """
    if max_depth is not None and max_depth < 1:
        raise ValueError(f"max_depth must be positive, got {max_depth}")

    if "nodes" in raw:
        roots = [
            entry["document"]
            for entry in raw["nodes"].values()
            if isinstance(entry, dict) and isinstance(entry.get("document"), dict)
        ]
    else:
        roots = raw.get("document", {}).get("children", [])

    design = SimplifiedDesign(
        name=raw.get("name", ""),
        last_modified=raw.get("lastModified", ""),
        thumbnail_url=raw.get("thumbnailUrl") or "",
    )
    design.nodes = [
        _parse_node(design.global_vars, node, None, 1, max_depth)
        for node in roots
        if is_visible(node)
    ]
    return design


def is_visible(node: Dict[str, Any]) -> bool:
    return node.get("visible", True) is not False


def iter_nodes(nodes: List[Dict[str, Any]]):
    """Depth-first walk over simplified nodes."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.get("children", []))


# ── Nodes ─────────────────────────────────────────────────────────────────


def _parse_node(
    global_vars: Dict[str, Dict[str, Any]],
    node: Dict[str, Any],
    parent: Optional[Dict[str, Any]],
    level: int,
    max_depth: Optional[int],
) -> Dict[str, Any]:
    simplified: Dict[str, Any] = {
        "id": node.get("id", ""),
        "name": node.get("name", ""),
        "type": "IMAGE-SVG" if node.get("type") == "VECTOR" else node.get("type", ""),
    }

    if node.get("characters"):
        simplified["text"] = node["characters"]

    style = node.get("style")
    if isinstance(style, dict) and style:
        simplified["textStyle"] = find_or_create_var(global_vars, text_style(style), STYLE)

    fills = [parse_paint(p) for p in node.get("fills") or [] if p.get("visible", True)]
    if fills:
        simplified["fills"] = find_or_create_var(global_vars, fills, FILL)

    strokes = build_strokes(node)
    if strokes:
        simplified["strokes"] = find_or_create_var(global_vars, strokes, STROKE)

    effects = build_effects(node)
    if effects:
        simplified["effects"] = find_or_create_var(global_vars, effects, EFFECT)

    layout = build_layout(node, parent)
    if layout:
        simplified["layout"] = find_or_create_var(global_vars, layout, LAYOUT)

    opacity = node.get("opacity")
    if opacity is not None and opacity != 1:
        simplified["opacity"] = opacity

    radius = border_radius(node)
    if radius:
        simplified["borderRadius"] = radius

    if max_depth is None or level < max_depth:
        children = [
            _parse_node(global_vars, child, node, level + 1, max_depth)
            for child in node.get("children") or []
            if is_visible(child)
        ]
        if children:
            simplified["children"] = children

    return simplified


def text_style(style: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key in ("fontFamily", "fontWeight", "fontSize", "textCase", "textAlignHorizontal", "textAlignVertical"):
        if key in style:
            result[key] = style[key]

    font_size = style.get("fontSize")
    if style.get("lineHeightPx") and font_size:
        result["lineHeight"] = f"{style['lineHeightPx'] / font_size:.3g}em"
    if style.get("letterSpacing") and font_size:
        result["letterSpacing"] = f"{style['letterSpacing'] / font_size * 100:.3g}%"
    return result


def border_radius(node: Dict[str, Any]) -> Optional[str]:
    radii = node.get("rectangleCornerRadii")
    if isinstance(radii, list) and len(radii) == 4 and len(set(radii)) > 1:
        return " ".join(f"{r:g}px" for r in radii)
    radius = node.get("cornerRadius")
    if radius:
        return f"{radius:g}px"
    return None


# ── Paints ────────────────────────────────────────────────────────────────


def color_value(color: Dict[str, float], opacity: float = 1.0) -> str:
    """Figma RGBA (0..1 floats) to ``#rrggbb`` or ``rgba(...)``."""
    r = round(color.get("r", 0) * 255)
    g = round(color.get("g", 0) * 255)
    b = round(color.get("b", 0) * 255)
    a = round(color.get("a", 1) * opacity, 2)
    if a < 1:
        return f"rgba({r}, {g}, {b}, {a:g})"
    return f"#{r:02X}{g:02X}{b:02X}"


def parse_paint(paint: Dict[str, Any]) -> Any:
    paint_type = paint.get("type")
    if paint_type == "IMAGE":
        return {"type": "IMAGE", "imageRef": paint.get("imageRef"), "scaleMode": paint.get("scaleMode")}
    if paint_type == "SOLID":
        return color_value(paint.get("color", {}), paint.get("opacity", 1))
    if paint_type in GRADIENT_TYPES:
        return {
            "type": paint_type,
            "gradientHandlePositions": paint.get("gradientHandlePositions", []),
            "gradientStops": [
                {"position": stop.get("position", 0), "color": color_value(stop.get("color", {}))}
                for stop in paint.get("gradientStops", [])
            ],
        }
    # unknown paint types pass through untouched
    return dict(paint)


def build_strokes(node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    colors = [parse_paint(p) for p in node.get("strokes") or [] if p.get("visible", True)]
    if not colors:
        return None
    strokes: Dict[str, Any] = {"colors": colors}
    if node.get("strokeWeight"):
        strokes["strokeWeight"] = f"{node['strokeWeight']:g}px"
    if node.get("strokeDashes"):
        strokes["strokeDashes"] = node["strokeDashes"]
    return strokes


def build_effects(node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    shadows: List[str] = []
    filters: List[str] = []
    backdrop: List[str] = []

    for effect in node.get("effects") or []:
        if not effect.get("visible", True):
            continue
        effect_type = effect.get("type")
        if effect_type in ("DROP_SHADOW", "INNER_SHADOW"):
            offset = effect.get("offset", {})
            shadow = (
                f"{offset.get('x', 0):g}px {offset.get('y', 0):g}px "
                f"{effect.get('radius', 0):g}px {effect.get('spread', 0):g}px "
                f"{color_value(effect.get('color', {}))}"
            )
            shadows.append(f"inset {shadow}" if effect_type == "INNER_SHADOW" else shadow)
        elif effect_type == "LAYER_BLUR":
            filters.append(f"blur({effect.get('radius', 0):g}px)")
        elif effect_type == "BACKGROUND_BLUR":
            backdrop.append(f"blur({effect.get('radius', 0):g}px)")

    result: Dict[str, Any] = {}
    if shadows:
        result["boxShadow"] = ", ".join(shadows)
    if filters:
        result["filter"] = " ".join(filters)
    if backdrop:
        result["backdropFilter"] = " ".join(backdrop)
    return result or None


# ── Layout ────────────────────────────────────────────────────────────────

_JUSTIFY = {"MIN": "flex-start", "CENTER": "center", "MAX": "flex-end", "SPACE_BETWEEN": "space-between"}
_ALIGN = {"MIN": "flex-start", "CENTER": "center", "MAX": "flex-end", "BASELINE": "baseline"}


def build_layout(node: Dict[str, Any], parent: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    layout: Dict[str, Any] = {}

    mode = node.get("layoutMode")
    if mode in ("HORIZONTAL", "VERTICAL"):
        layout["mode"] = "row" if mode == "HORIZONTAL" else "column"
        if node.get("primaryAxisAlignItems") in _JUSTIFY:
            layout["justifyContent"] = _JUSTIFY[node["primaryAxisAlignItems"]]
        if node.get("counterAxisAlignItems") in _ALIGN:
            layout["alignItems"] = _ALIGN[node["counterAxisAlignItems"]]
        if node.get("itemSpacing"):
            layout["gap"] = f"{node['itemSpacing']:g}px"
        if node.get("layoutWrap") == "WRAP":
            layout["wrap"] = True
        padding = [node.get(k, 0) for k in ("paddingTop", "paddingRight", "paddingBottom", "paddingLeft")]
        if any(padding):
            layout["padding"] = " ".join(f"{p:g}px" for p in padding)

    sizing = {}
    for axis, key in (("horizontal", "layoutSizingHorizontal"), ("vertical", "layoutSizingVertical")):
        if node.get(key) in ("FILL", "HUG"):
            sizing[axis] = node[key].lower()
    if sizing:
        layout["sizing"] = sizing

    parent_mode = parent.get("layoutMode") if parent else None
    box = node.get("absoluteBoundingBox")
    parent_box = parent.get("absoluteBoundingBox") if parent else None
    absolute = node.get("layoutPositioning") == "ABSOLUTE"
    if parent is not None and isinstance(box, dict) and isinstance(parent_box, dict):
        if absolute or parent_mode not in ("HORIZONTAL", "VERTICAL"):
            layout["locationRelativeToParent"] = {
                "x": box.get("x", 0) - parent_box.get("x", 0),
                "y": box.get("y", 0) - parent_box.get("y", 0),
            }
            if absolute:
                layout["position"] = "absolute"
    if isinstance(box, dict) and "width" in box and "height" in box and not sizing:
        layout["dimensions"] = {"width": box["width"], "height": box["height"]}

    return layout or None
