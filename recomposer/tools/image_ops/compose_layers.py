from __future__ import annotations

import base64
import io
import logging
from typing import Any, List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw

from recomposer.schemas.geometry_schema import LayerNode, Rect
from recomposer.schemas.strategy_schema import DerivedGeometry
from recomposer.store.document_store import DocumentStore
from recomposer.app.errors import RenderError
from recomposer.tools.image_ops.optical_bounds import as_rgba_array

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

DEFAULT_BACKGROUND = "#0f172a"           # dark slate keeps container edges visible
PLACEHOLDER_FILL: RGBA = (192, 132, 252, 77)      # rgba(192,132,252,0.3)
PLACEHOLDER_OUTLINE: RGBA = (192, 132, 252, 204)  # rgba(192,132,252,0.8)
PLACEHOLDER_OUTLINE_PX = 2
# rotated rasters are drawn whole; boxes beyond this multiple of the canvas are skipped
MAX_ROTATED_OVERSCAN = 4


def _to_image(raster: Any) -> Image.Image:
    if isinstance(raster, Image.Image):
        return raster.convert("RGBA")
    return Image.fromarray(as_rgba_array(raster))


def _with_opacity(img: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1.0:
        return img
    alpha = img.getchannel("A").point(lambda a: int(round(a * opacity)))
    out = img.copy()
    out.putalpha(alpha)
    return out


def _composite_clipped(canvas: Image.Image, img: Image.Image, x: int, y: int) -> None:
    """alpha_composite that tolerates negative / out-of-canvas destinations."""
    src_x = max(0, -x)
    src_y = max(0, -y)
    dst_x = max(0, x)
    dst_y = max(0, y)
    w = min(img.width - src_x, canvas.width - dst_x)
    h = min(img.height - src_y, canvas.height - dst_y)
    if w <= 0 or h <= 0:
        return
    canvas.alpha_composite(img, dest=(dst_x, dst_y), source=(src_x, src_y, src_x + w, src_y + h))


def _draw_raster(canvas: Image.Image, layer: LayerNode, raster: Any, box: Rect) -> None:
    w = max(1, int(round(box.w)))
    h = max(1, int(round(box.h)))
    x = int(round(box.x))
    y = int(round(box.y))
    img = _to_image(raster)

    rotation = layer.transform.rotation
    if not rotation:
        # resample only the part of the box that lands on the canvas
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + w, canvas.width), min(y + h, canvas.height)
        if x1 <= x0 or y1 <= y0:
            return
        sx = img.width / w
        sy = img.height / h
        src = ((x0 - x) * sx, (y0 - y) * sy, (x1 - x) * sx, (y1 - y) * sy)
        part = img.resize((x1 - x0, y1 - y0), Image.Resampling.BILINEAR, box=src)
        canvas.alpha_composite(_with_opacity(part, layer.opacity), dest=(x0, y0))
        return

    if w > canvas.width * MAX_ROTATED_OVERSCAN or h > canvas.height * MAX_ROTATED_OVERSCAN:
        raise ValueError(f"rotated box {w}x{h} is too large for a {canvas.width}x{canvas.height} canvas")
    if img.size != (w, h):
        img = img.resize((w, h), Image.Resampling.BILINEAR)
    cx, cy = x + w / 2, y + h / 2
    # Pillow rotates counter-clockwise
    img = img.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)
    x = int(round(cx - img.width / 2))
    y = int(round(cy - img.height / 2))
    _composite_clipped(canvas, _with_opacity(img, layer.opacity), x, y)


def _draw_placeholder(canvas: Image.Image, box: Rect) -> None:
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    x0 = int(round(box.x))
    y0 = int(round(box.y))
    x1 = int(round(box.x + box.w)) - 1
    y1 = int(round(box.y + box.h)) - 1
    if x1 < x0 or y1 < y0:
        return
    ImageDraw.Draw(overlay).rectangle(
        [x0, y0, x1, y1],
        fill=PLACEHOLDER_FILL,
        outline=PLACEHOLDER_OUTLINE,
        width=PLACEHOLDER_OUTLINE_PX,
    )
    canvas.alpha_composite(overlay)


def _draw_layers(
    canvas: Image.Image,
    layers: List[LayerNode],
    store: DocumentStore,
    origin: Rect,
    skipped: List[str],
) -> None:
    # authored order is front-to-back, paint back-to-front
    for layer in reversed(layers):
        if not layer.is_visible:
            continue

        if layer.is_group:
            # children carry absolute coordinates of their own
            _draw_layers(canvas, layer.children, store, origin, skipped)
            continue

        box = Rect(
            x=layer.coords.x - origin.x,
            y=layer.coords.y - origin.y,
            w=layer.coords.w,
            h=layer.coords.h,
        )

        if layer.kind == "generative":
            _draw_placeholder(canvas, box)
            continue

        try:
            raster = store.get_raster_for_layer(layer.id)
        except (KeyError, ValueError, OSError) as e:
            err = RenderError(f"raster for layer {layer.name or layer.id} could not be loaded: {e}")
            logger.warning(str(err), extra={"layer_id": layer.id})
            skipped.append(layer.id)
            continue
        if raster is None:
            logger.warning("raster unavailable, layer skipped", extra={"layer_id": layer.id})
            skipped.append(layer.id)
            continue

        try:
            _draw_raster(canvas, layer, raster, box)
        except (ValueError, TypeError, OSError, MemoryError) as e:
            err = RenderError(f"failed to draw layer {layer.name or layer.id}: {e}")
            logger.warning(str(err), extra={"layer_id": layer.id})
            skipped.append(layer.id)


def render_composite(
    derived: DerivedGeometry,
    store: DocumentStore,
    *,
    background: str = DEFAULT_BACKGROUND,
    skipped: Optional[List[str]] = None,
) -> Image.Image:
    """
    Audit render of derived geometry into an RGBA image the size of its container.

    Never raises for per-layer problems: unavailable or undrawable rasters are
    skipped (ids appended to `skipped` when given) and the rest is still drawn.
    """
    c = derived.container
    size = (max(1, int(round(c.w))), max(1, int(round(c.h))))
    canvas = Image.new("RGBA", size, ImageColor.getcolor(background, "RGBA"))

    _draw_layers(canvas, derived.layers, store, c, skipped if skipped is not None else [])
    return canvas


def encode_image(img: Image.Image, fmt: str = "JPEG", quality: int = 90) -> bytes:
    buf = io.BytesIO()
    if fmt.upper() in ("JPEG", "JPG"):
        img.convert("RGB").save(buf, format="JPEG", quality=quality)
    else:
        img.save(buf, format=fmt.upper())
    return buf.getvalue()


def to_data_url(img: Image.Image, fmt: str = "JPEG", quality: int = 90) -> str:
    mime = "image/jpeg" if fmt.upper() in ("JPEG", "JPG") else f"image/{fmt.lower()}"
    data = base64.b64encode(encode_image(img, fmt=fmt, quality=quality)).decode("ascii")
    return f"data:{mime};base64,{data}"
