import pytest

from recomposer.schemas.geometry_schema import Point, Rect, find_layer
from recomposer.schemas.strategy_schema import Override, Strategy
from recomposer.tools.geometry.overrides import apply_overrides, apply_strategy, index_overrides
from recomposer.tools.geometry.transforms import build_geometric_model


def dump(layers):
    return [layer.model_dump() for layer in layers]


class TestApplyOverrides:

    def test_empty_overrides_give_equal_tree(self, layer_tree):
        out = apply_overrides(layer_tree, [])
        assert dump(out) == dump(layer_tree)

    def test_result_shares_no_nodes_with_input(self, layer_tree):
        out = apply_overrides(layer_tree, [])
        assert out[0] is not layer_tree[0]
        assert out[1].children[0] is not layer_tree[1].children[0]

    def test_input_not_mutated(self, layer_tree):
        before = dump(layer_tree)
        apply_overrides(layer_tree, [Override(layer_id="root/group/a", x_offset=5)])
        assert dump(layer_tree) == before

    def test_unknown_id_is_noop(self, layer_tree):
        out = apply_overrides(layer_tree, [Override(layer_id="nope", x_offset=99)])
        assert dump(out) == dump(layer_tree)

    def test_same_input_same_output(self, layer_tree):
        ovs = [Override(layer_id="root/logo", x_offset=3, individual_scale=1.5)]
        assert dump(apply_overrides(layer_tree, ovs)) == dump(apply_overrides(layer_tree, ovs))

    def test_nested_override_keeps_structure(self, layer_tree):
        out = apply_overrides(layer_tree, [Override(layer_id="root/group/b", y_offset=-10)])
        assert [c.id for c in out[1].children] == ["root/group/a", "root/group/b"]
        assert out[1].children[1].coords == Rect(x=90, y=80, w=20, h=20)
        assert out[1].children[0].coords == layer_tree[1].children[0].coords

    def test_group_override_does_not_move_children(self, layer_tree):
        out = apply_overrides(layer_tree, [Override(layer_id="root/group", x_offset=30)])
        assert out[1].coords.x == 90
        assert dump(out[1].children) == dump(layer_tree[1].children)

    def test_transform_and_base_coords(self, layer_tree):
        out = apply_overrides(layer_tree, [Override(layer_id="root/logo", x_offset=10, individual_scale=2, rotation=15)])
        logo = out[0]
        assert logo.base_coords == Rect(x=100, y=100, w=50, h=50)
        assert logo.transform.scale_x == 2
        assert logo.transform.rotation == 15
        assert (logo.transform.offset_x, logo.transform.offset_y) == (110, 100)

    def test_base_coords_kept_across_derivations(self, layer_tree):
        first = apply_overrides(layer_tree, [Override(layer_id="root/logo", x_offset=10)])
        second = apply_overrides(first, [Override(layer_id="root/logo", x_offset=10)])
        assert second[0].base_coords == Rect(x=100, y=100, w=50, h=50)
        assert second[0].coords.x == 120


def test_duplicate_overrides_first_wins():
    a = Override(layer_id="x", x_offset=1)
    b = Override(layer_id="x", x_offset=2)
    assert index_overrides([a, b])["x"] is a


class TestApplyStrategy:

    def test_scenario_relative_move_and_scale(self, layer_tree, container, move_logo):
        model = build_geometric_model(layer_tree, container, generation_id=3)
        derived = apply_strategy(model, move_logo)
        logo = find_layer(derived.layers, "root/logo")
        assert logo.relative == Rect(x=60, y=45, w=100, h=100)
        assert logo.coords == Rect(x=110, y=95, w=100, h=100)
        assert derived.is_polished
        assert derived.source_generation_id == 3

    def test_relative_visual_center_follows(self, layer_tree, container, move_logo, store):
        from recomposer.tools.image_ops.optical_bounds import annotate_optics

        model = build_geometric_model(annotate_optics(layer_tree, store), container)
        before = find_layer(model.layers, "root/logo").relative_visual_center
        assert before == Point(x=55, y=55)
        after = find_layer(apply_strategy(model, move_logo).layers, "root/logo").relative_visual_center
        # offset within the box doubles with the scale
        assert after == Point(x=70, y=55)

    def test_no_strategy_is_pass_through(self, model):
        derived = apply_strategy(model, None)
        assert not derived.is_polished
        assert derived.strategy is None
        assert dump(derived.layers) == dump(model.layers)

    def test_reapplying_is_idempotent(self, model, move_logo):
        once = apply_strategy(model, move_logo)
        twice = apply_strategy(model, move_logo)
        assert dump(once.layers) == dump(twice.layers)

    def test_single_override_object_accepted(self):
        s = Strategy.model_validate({"overrides": {"layerId": "a", "xOffset": 1}})
        assert len(s.overrides) == 1

    def test_scale_must_be_positive(self):
        with pytest.raises(ValueError):
            Override(layer_id="a", individual_scale=0)
