"""Workflow graph construction and link-resolution helpers."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ... import config

WorkflowGraph = Dict[str, Dict[str, Any]]

# Widget order of well-known nodes in LiteGraph exports (``widgets_values``).
WIDGET_NAMES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "KSampler": ("seed", "control_after_generate", "steps", "cfg", "sampler_name", "scheduler", "denoise"),
        "KSamplerAdvanced": (
            "add_noise",
            "noise_seed",
            "control_after_generate",
            "steps",
            "cfg",
            "sampler_name",
            "scheduler",
            "start_at_step",
            "end_at_step",
            "return_with_leftover_noise",
        ),
        "CheckpointLoaderSimple": ("ckpt_name",),
        "LoraLoader": ("lora_name", "strength_model", "strength_clip"),
        "LoraLoaderModelOnly": ("lora_name", "strength_model"),
        "VAELoader": ("vae_name",),
        "CLIPTextEncode": ("text",),
        "UpscaleModelLoader": ("model_name",),
        "ControlNetLoader": ("control_net_name",),
        "EmptyLatentImage": ("width", "height", "batch_size"),
    }
)


def _to_int(value: Any) -> int | None:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _looks_like_node_id(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if not isinstance(value, str):
        return False
    s = value.strip()
    if not s:
        return False
    parts = s.split(":")
    return all(p.isdigit() for p in parts if p != "")


def _is_link(value: Any) -> bool:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return False
    a, b = value[0], value[1]
    return _looks_like_node_id(a) and not isinstance(b, bool) and _to_int(b) is not None


def _resolve_link(value: Any) -> Tuple[str, int] | None:
    if not _is_link(value):
        return None
    a, b = value[0], value[1]
    return str(a).strip(), int(_to_int(b) or 0)


def _node_type(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    return str(node.get("class_type") or node.get("type") or "")


def _inputs(node: Any) -> Dict[str, Any]:
    if not isinstance(node, dict):
        return {}
    ins = node.get("inputs")
    return ins if isinstance(ins, dict) else {}


def _lower(s: Any) -> str:
    return str(s or "").lower()


def _node_sort_key(item: Tuple[int, str]) -> Tuple[int, Tuple[int, ...], int]:
    """Numeric ids first in numeric order ("57:35" sorts as (57, 35)), others by position."""
    position, node_id = item
    parts = node_id.split(":")
    if parts and all(p.isdigit() for p in parts):
        return 0, tuple(int(p) for p in parts), position
    return 1, (), position


def ordered_node_ids(graph: WorkflowGraph) -> List[str]:
    indexed = list(enumerate(graph.keys()))
    return [node_id for _, node_id in sorted(indexed, key=_node_sort_key)]


class LinkResolver:
    """
    Follows ``[node_id, output_index]`` references through a graph.

    Every traversal carries the set of node ids on the current path; a reference
    back into that set resolves to None (cycles are cut, not followed), and
    paths longer than ``max_depth`` stop the same way.

    Results are memoized per node in ``memo`` for the lifetime of the resolver,
    so shared upstream nodes are expanded once per parse.
    """

    def __init__(self, graph: WorkflowGraph, max_depth: int | None = None):
        self.graph = graph
        self.max_depth = max_depth if max_depth is not None else config.MAX_GRAPH_DEPTH
        self.memo: Dict[Tuple[Any, ...], Any] = {}

    def target(self, value: Any, path: FrozenSet[str] = frozenset()) -> Optional[Tuple[str, Dict[str, Any]]]:
        resolved = _resolve_link(value)
        if not resolved:
            return None
        node_id, _ = resolved
        if node_id in path or len(path) >= self.max_depth:
            return None
        node = self.graph.get(node_id)
        if not isinstance(node, dict):
            return None
        return node_id, node

    def scalar(self, value: Any, keys: Tuple[str, ...] = (), path: FrozenSet[str] = frozenset()) -> Any:
        """
        Literal value of an input, following links into primitive/value nodes.

        ``keys`` names the inputs to look at on the referenced node, tried before
        the generic primitive slots.
        """
        if not _is_link(value):
            return value if isinstance(value, (int, float, str)) and not isinstance(value, bool) else None
        hit = self.target(value, path)
        if hit is None:
            return None
        node_id, node = hit
        memo_key = ("scalar", node_id, keys)
        if memo_key in self.memo:
            return self.memo[memo_key]
        found = None
        ins = _inputs(node)
        for key in keys + ("value", "Value", "seed", "noise_seed", "int", "float", "number", "string", "text"):
            if key not in ins:
                continue
            found = self.scalar(ins[key], keys, path | {node_id})
            if found is not None:
                break
        self.memo[memo_key] = found
        return found


def _build_link_source_map(links: Any) -> Dict[Any, Tuple[Any, Any]]:
    link_to_source: Dict[Any, Tuple[Any, Any]] = {}
    if not isinstance(links, list):
        return link_to_source
    for link in links:
        if isinstance(link, list) and len(link) >= 3:
            link_id, src_node, src_slot = link[0], link[1], link[2]
            link_to_source[link_id] = (src_node, src_slot)
        elif isinstance(link, dict) and "id" in link:
            link_to_source[link["id"]] = (link.get("origin_id"), link.get("origin_slot"))
    return link_to_source


def _convert_litegraph_node(node: Dict[str, Any], link_to_source: Dict[Any, Tuple[Any, Any]]) -> Dict[str, Any]:
    class_type = node.get("type")
    inputs: Dict[str, Any] = {}

    widgets = node.get("widgets_values")
    if isinstance(widgets, list):
        for name, value in zip(WIDGET_NAMES.get(str(class_type), ()), widgets):
            inputs[name] = value
    elif isinstance(widgets, dict):
        inputs.update(widgets)

    raw_inputs = node.get("inputs")
    if isinstance(raw_inputs, list):
        for item in raw_inputs:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            source = link_to_source.get(item.get("link"))
            if source and source[0] is not None:
                inputs[str(item["name"])] = [str(source[0]), _to_int(source[1]) or 0]

    return {"class_type": class_type, "inputs": inputs}


def _is_litegraph(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("nodes"), list)


def _litegraph_source(prompt_graph: Any, workflow: Any) -> Optional[Dict[str, Any]]:
    if _is_litegraph(workflow):
        return workflow
    if _is_litegraph(prompt_graph):
        return prompt_graph
    return None


def build_workflow_graph(prompt_graph: Any, workflow: Any = None) -> Optional[WorkflowGraph]:
    """
    Build a WorkflowGraph from a prompt graph, falling back to a LiteGraph workflow.

    Raises:
        ValueError: the graph has more nodes than ``config.MAX_GRAPH_NODES``.
    """
    graph: WorkflowGraph = {}
    litegraph = _litegraph_source(prompt_graph, workflow)
    if isinstance(prompt_graph, dict) and prompt_graph and not _is_litegraph(prompt_graph):
        for key, value in prompt_graph.items():
            if isinstance(value, dict):
                graph[str(key)] = value
    elif litegraph is not None:
        link_to_source = _build_link_source_map(litegraph.get("links"))
        for node in litegraph["nodes"]:
            if isinstance(node, dict) and node.get("id") is not None:
                graph[str(node["id"])] = _convert_litegraph_node(node, link_to_source)

    if len(graph) > config.MAX_GRAPH_NODES:
        raise ValueError(f"Workflow graph has {len(graph)} nodes (limit {config.MAX_GRAPH_NODES})")
    return graph or None
