from PIL import Image

from recomposer.schemas.geometry_schema import ContainerBounds, LayerNode, Rect
from recomposer.schemas.strategy_schema import DerivedGeometry
from recomposer.store.document_store import InMemoryDocumentStore
from recomposer.tools.image_ops.compose_layers import (
    PLACEHOLDER_OUTLINE,
    encode_image,
    render_composite,
    to_data_url,
)

BG = (15, 23, 42, 255)  # #0f172a


def derived(layers, w=100, h=100, x=0, y=0):
    return DerivedGeometry(layers=layers, container=ContainerBounds(x=x, y=y, w=w, h=h))


class TestRenderComposite:

    def test_canvas_is_container_sized_background(self):
        img = render_composite(derived([], w=40, h=30), InMemoryDocumentStore())
        assert img.size == (40, 30)
        assert img.getpixel((0, 0)) == BG

    def test_half_opacity_raster_over_placeholder(self, make_solid):
        raster = LayerNode(id="r", coords=Rect(x=10, y=10, w=40, h=40), opacity=0.5)
        fill = LayerNode(id="g", kind="generative", coords=Rect(x=30, y=30, w=40, h=40))
        store = InMemoryDocumentStore({"r": make_solid(40, 40, (255, 255, 255, 255))})
        img = render_composite(derived([raster, fill]), store)

        # raster only: blended with the background, not fully opaque white
        r, g, b, _ = img.getpixel((15, 15))
        assert 120 < r < 140 and 120 < g < 140

        # placeholder only: outline colour mixed over background, never raster content
        edge = img.getpixel((69, 50))
        assert edge != BG and edge[:3] != (255, 255, 255)
        assert edge[0] > BG[0] and edge[2] > BG[2]

        # raster drawn on top of the placeholder interior
        top = img.getpixel((40, 40))
        inner = img.getpixel((60, 60))
        assert top != inner

    def test_placeholder_never_reads_store(self):
        class ExplodingStore:
            def get_raster_for_layer(self, layer_id):
                raise AssertionError("placeholder must not fetch rasters")

        fill = LayerNode(id="g", kind="generative", coords=Rect(x=0, y=0, w=20, h=20))
        img = render_composite(derived([fill], w=20, h=20), ExplodingStore())
        assert img.getpixel((0, 0))[:3] != BG[:3]
        assert PLACEHOLDER_OUTLINE[3] > 0

    def test_missing_raster_skipped(self, make_solid):
        layers = [
            LayerNode(id="gone", coords=Rect(x=0, y=0, w=10, h=10)),
            LayerNode(id="here", coords=Rect(x=20, y=20, w=10, h=10)),
        ]
        store = InMemoryDocumentStore({"here": make_solid(10, 10)})
        skipped = []
        img = render_composite(derived(layers, w=40, h=40), store, skipped=skipped)
        assert skipped == ["gone"]
        assert img.getpixel((5, 5)) == BG
        assert img.getpixel((25, 25)) == (255, 0, 0, 255)

    def test_invisible_layers_not_drawn(self, make_solid):
        layer = LayerNode(id="r", coords=Rect(x=0, y=0, w=10, h=10), is_visible=False)
        img = render_composite(derived([layer], w=10, h=10), InMemoryDocumentStore({"r": make_solid(10, 10)}))
        assert img.getpixel((5, 5)) == BG

    def test_front_to_back_order(self, make_solid):
        front = LayerNode(id="front", coords=Rect(x=0, y=0, w=10, h=10))
        back = LayerNode(id="back", coords=Rect(x=0, y=0, w=10, h=10))
        store = InMemoryDocumentStore({
            "front": make_solid(10, 10, (0, 255, 0, 255)),
            "back": make_solid(10, 10, (0, 0, 255, 255)),
        })
        img = render_composite(derived([front, back], w=10, h=10), store)
        assert img.getpixel((5, 5)) == (0, 255, 0, 255)

    def test_group_children_use_absolute_coords(self, make_solid):
        group = LayerNode(
            id="grp", kind="group", coords=Rect(x=0, y=0, w=50, h=50),
            children=[LayerNode(id="child", coords=Rect(x=60, y=60, w=10, h=10))],
        )
        store = InMemoryDocumentStore({"child": make_solid(10, 10)})
        img = render_composite(derived([group], w=40, h=40, x=50, y=50), store)
        assert img.getpixel((15, 15)) == (255, 0, 0, 255)
        assert img.getpixel((5, 5)) == BG

    def test_raster_resized_to_box(self, make_solid):
        layer = LayerNode(id="r", coords=Rect(x=0, y=0, w=20, h=20))
        store = InMemoryDocumentStore({"r": Image.fromarray(make_solid(5, 5))})
        img = render_composite(derived([layer], w=30, h=30), store)
        assert img.getpixel((18, 18)) == (255, 0, 0, 255)
        assert img.getpixel((25, 25)) == BG

    def test_offscreen_layer_clipped(self, make_solid):
        layer = LayerNode(id="r", coords=Rect(x=-5, y=-5, w=10, h=10))
        img = render_composite(derived([layer], w=10, h=10), InMemoryDocumentStore({"r": make_solid(10, 10)}))
        assert img.getpixel((2, 2)) == (255, 0, 0, 255)
        assert img.getpixel((7, 7)) == BG


def test_encoders():
    img = Image.new("RGBA", (4, 4), (255, 0, 0, 255))
    assert encode_image(img, fmt="PNG").startswith(b"\x89PNG")
    assert encode_image(img).startswith(b"\xff\xd8")
    assert to_data_url(img, fmt="PNG").startswith("data:image/png;base64,")


class UndecodedStore:
    """Raises for one layer id, serves the rest."""

    def __init__(self, rasters, broken):
        self.rasters = rasters
        self.broken = broken

    def get_raster_for_layer(self, layer_id):
        if layer_id == self.broken:
            raise OSError("layer canvas not decoded")
        return self.rasters.get(layer_id)


class TestRenderSurvivesBadLayers:

    def test_store_error_skips_layer(self, make_solid):
        layers = [
            LayerNode(id="bad", coords=Rect(x=0, y=0, w=10, h=10)),
            LayerNode(id="good", coords=Rect(x=20, y=20, w=10, h=10)),
        ]
        store = UndecodedStore({"good": make_solid(10, 10)}, broken="bad")
        skipped = []
        img = render_composite(derived(layers, w=40, h=40), store, skipped=skipped)
        assert skipped == ["bad"]
        assert img.getpixel((5, 5)) == BG
        assert img.getpixel((25, 25)) == (255, 0, 0, 255)

    def test_huge_box_is_clipped_not_allocated(self, make_solid):
        layer = LayerNode(id="r", coords=Rect(x=-500000, y=-500000, w=1000000, h=1000000))
        store = InMemoryDocumentStore({"r": make_solid(10, 10)})
        skipped = []
        img = render_composite(derived([layer], w=20, h=20), store, skipped=skipped)
        assert skipped == []
        assert img.getpixel((10, 10)) == (255, 0, 0, 255)

    def test_huge_rotated_box_skipped(self, make_solid):
        from recomposer.schemas.geometry_schema import LayerTransform

        layer = LayerNode(
            id="r", coords=Rect(x=0, y=0, w=1000000, h=1000000),
            transform=LayerTransform(rotation=30),
        )
        store = InMemoryDocumentStore({"r": make_solid(10, 10)})
        skipped = []
        img = render_composite(derived([layer], w=20, h=20), store, skipped=skipped)
        assert skipped == ["r"]
        assert img.getpixel((10, 10)) == BG
