"""
Shared fixtures for recomposer tests.

Provides small layer trees, an in-memory document store with synthetic rasters,
and scripted strategy / preview generators so no test touches the network.
"""
import asyncio

import numpy as np
import pytest

from recomposer.app.errors import GeneratorError
from recomposer.app.settings import Settings
from recomposer.schemas.geometry_schema import ContainerBounds, GeometricModel, LayerNode, Rect
from recomposer.schemas.strategy_schema import Override, Strategy
from recomposer.store.document_store import InMemoryDocumentStore
from recomposer.store.registry import GraphRegistry


# ── Raster helpers ──────────────────────────────────────────────────────

def block_raster(size=10, lo=3, hi=6, color=(255, 0, 0)):
    """size x size transparent raster with an opaque block covering lo..hi inclusive."""
    arr = np.zeros((size, size, 4), dtype=np.uint8)
    arr[lo:hi + 1, lo:hi + 1, :3] = color
    arr[lo:hi + 1, lo:hi + 1, 3] = 255
    return arr


def solid_raster(w, h, color=(255, 0, 0, 255)):
    arr = np.zeros((h, w, 4), dtype=np.uint8)
    arr[..., :] = color
    return arr


# ── Scripted generators ─────────────────────────────────────────────────

class ScriptedGenerator:
    """Returns queued strategies in order; records every call."""

    def __init__(self, *strategies, delay=0.0):
        self.strategies = list(strategies)
        self.delay = delay
        self.calls = []

    async def generate(self, model, ruleset, visual_context):
        self.calls.append({"model": model, "ruleset": list(ruleset), "visual_context": visual_context})
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.strategies) > 1:
            return self.strategies.pop(0)
        return self.strategies[0]


class FailingGenerator:
    def __init__(self, message="upstream 503"):
        self.message = message
        self.calls = 0

    async def generate(self, model, ruleset, visual_context):
        self.calls += 1
        raise GeneratorError(self.message)


class ScriptedPreviewGenerator:
    def __init__(self, url="data:image/png;base64,AAAA"):
        self.url = url
        self.prompts = []

    async def generate_preview(self, prompt, reference_png=None):
        self.prompts.append(prompt)
        return self.url


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def container():
    return ContainerBounds(x=50, y=50, w=400, h=400, name="Hero")


@pytest.fixture
def logo_layer():
    return LayerNode(id="root/logo", name="Logo", coords=Rect(x=100, y=100, w=50, h=50))


@pytest.fixture
def layer_tree(logo_layer):
    return [
        logo_layer,
        LayerNode(
            id="root/group",
            name="Group",
            kind="group",
            coords=Rect(x=60, y=60, w=200, h=200),
            children=[
                LayerNode(id="root/group/a", name="A", coords=Rect(x=70, y=70, w=20, h=20)),
                LayerNode(id="root/group/b", name="B", coords=Rect(x=90, y=90, w=20, h=20)),
            ],
        ),
        LayerNode(id="root/fill", name="Fill", kind="generative", coords=Rect(x=200, y=200, w=80, h=40)),
    ]


@pytest.fixture
def model(layer_tree, container):
    return GeometricModel(layers=layer_tree, container=container, generation_id=1, is_confirmed=True)


@pytest.fixture
def store():
    return InMemoryDocumentStore({
        "root/logo": block_raster(),
        "root/group/a": solid_raster(20, 20, (0, 255, 0, 255)),
        "root/group/b": solid_raster(20, 20, (0, 0, 255, 255)),
    })


@pytest.fixture
def registry():
    return GraphRegistry()


@pytest.fixture
def settings():
    return Settings(preview_debounce_s=0.01, generator_timeout_s=1.0)


@pytest.fixture
def move_logo():
    return Strategy(
        reasoning="Logo nudged into the safe zone.",
        overrides=[Override(layer_id="root/logo", x_offset=10, y_offset=-5, individual_scale=2, cited_rule="R1")],
    )


@pytest.fixture
def make_block():
    return block_raster


@pytest.fixture
def make_solid():
    return solid_raster
