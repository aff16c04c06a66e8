from __future__ import annotations

from langgraph.graph import StateGraph, START, END

from recomposer.agents.nodes import (
    prepare_node,
    scan_node,
    transform_node,
    visual_context_node,
    generate_node,
    compose_node,
    render_node,
)
from recomposer.graph.routers import route_after_prepare, route_after_generate


def build_graph() -> "StateGraph":
    """
    One instance run:
    - START -> prepare
    - prepare -> (scan, or END when the input model is missing)
    - scan -> transform -> visual_context -> generate
    - generate -> (compose, or END when the generator failed)
    - compose -> render -> END
    """
    g = StateGraph(dict)  # state is a Dict[str, Any]

    g.add_node("prepare", prepare_node)
    g.add_node("scan", scan_node)
    g.add_node("transform", transform_node)
    g.add_node("visual_context", visual_context_node)
    g.add_node("generate", generate_node)
    g.add_node("compose", compose_node)
    g.add_node("render", render_node)

    g.add_edge(START, "prepare")

    g.add_conditional_edges(
        "prepare",
        route_after_prepare,
        {
            "continue": "scan",
            "stop": END,
        },
    )

    g.add_edge("scan", "transform")
    g.add_edge("transform", "visual_context")
    g.add_edge("visual_context", "generate")

    g.add_conditional_edges(
        "generate",
        route_after_generate,
        {
            "continue": "compose",
            "stop": END,
        },
    )

    g.add_edge("compose", "render")
    g.add_edge("render", END)

    return g
