"""
ComfyUI dialect: prompt graph / workflow JSON stored in ``prompt`` and ``workflow`` text chunks.

Extraction is best-effort. Nodes are classified by ``class_type``; anything
that does not look like a known loader or sampler is ignored.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ...shared import MODEL_EXTENSIONS, get_logger
from ...utils import to_float
from ..metadata.descriptor import DetectResult
from ..metadata.encoding import decode_user_comment
from ..metadata.parsing_utils import (
    load_json_object,
    looks_like_comfyui_prompt_graph,
    looks_like_comfyui_workflow,
    looks_like_json,
    strip_known_json_prefix,
)
from .graph_converter import (
    LinkResolver,
    WorkflowGraph,
    _inputs,
    _is_link,
    _lower,
    _node_type,
    build_workflow_graph,
    ordered_node_ids,
)

logger = get_logger(__name__)

_GRAPH_FIELDS = ("prompt", "workflow")
_EMBEDDED_TEXT_FIELDS = ("parameters", "generationDetails", "userComment")

_MIN_LORA_STRENGTH = 0.001


def _clean_model_id(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    s = s.replace("\\", "/").split("/")[-1]
    lower = s.lower()
    for ext in MODEL_EXTENSIONS:
        if lower.endswith(ext):
            return s[: -len(ext)]
    return s


# Node classification -----------------------------------------------------------


def _is_checkpoint_loader(ct: str) -> bool:
    return "checkpointloader" in ct or "unetloader" in ct or "loaddiffusionmodel" in ct


def _is_lora_loader(ct: str) -> bool:
    return "lora" in ct and "loader" in ct


def _is_vae_loader(ct: str) -> bool:
    return "vaeloader" in ct


def _is_controlnet_node(ct: str) -> bool:
    return "controlnetloader" in ct or "controlnetapply" in ct


def _is_upscaler_loader(ct: str) -> bool:
    return "upscalemodelloader" in ct


def _is_sampler(node: Dict[str, Any]) -> bool:
    ct = _lower(_node_type(node))
    if not ct or "select" in ct:
        return False
    if "ksampler" in ct or "samplercustom" in ct:
        return True
    ins = _inputs(node)
    has_seed = any(ins.get(k) is not None for k in ("seed", "noise_seed"))
    return ins.get("steps") is not None and ins.get("cfg") is not None and has_seed


# Resources ---------------------------------------------------------------------


@dataclass
class _ResourceCollector:
    resolver: LinkResolver
    resources: List[Dict[str, Any]] = field(default_factory=list)
    _seen: set = field(default_factory=set)

    def add(self, type_: str, raw_name: Any, **extra: Any) -> None:
        name = _clean_model_id(self.resolver.scalar(raw_name))
        if not name or (type_, name) in self._seen:
            return
        self._seen.add((type_, name))
        entry: Dict[str, Any] = {"type": type_, "name": name}
        entry.update({k: v for k, v in extra.items() if v is not None})
        self.resources.append(entry)

    def visit(self, node: Dict[str, Any]) -> None:
        ct = _lower(_node_type(node))
        ins = _inputs(node)
        if _is_lora_loader(ct):
            self._visit_lora(ins)
        elif _is_checkpoint_loader(ct):
            self.add("model", ins.get("ckpt_name") or ins.get("unet_name") or ins.get("model_name"))
        elif _is_vae_loader(ct):
            self.add("vae", ins.get("vae_name"))
        elif _is_controlnet_node(ct):
            self.add("controlnet", ins.get("control_net_name"))
        elif _is_upscaler_loader(ct):
            self.add("upscaler", ins.get("model_name"))

    def _visit_lora(self, ins: Dict[str, Any]) -> None:
        strength = to_float(self.resolver.scalar(ins.get("strength_model", ins.get("strength"))))
        # Disabled LoRAs are saved with strength 0.
        if strength is not None and abs(strength) < _MIN_LORA_STRENGTH:
            return
        self.add(
            "lora",
            ins.get("lora_name"),
            weight=strength,
            strengthClip=to_float(self.resolver.scalar(ins.get("strength_clip"))),
        )


# Samplers and prompts ----------------------------------------------------------


def _first_present(ins: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if ins.get(key) is not None:
            return ins[key]
    return None


def _via(resolver: LinkResolver, ins: Dict[str, Any], link_key: str, keys: Tuple[str, ...]) -> Any:
    """Read ``keys`` from the node referenced by ``ins[link_key]`` (SamplerCustom-style split nodes)."""
    hit = resolver.target(ins.get(link_key))
    if hit is None:
        return None
    node_id, node = hit
    return resolver.scalar(_first_present(_inputs(node), keys), path=frozenset({node_id}))


def _guider_link(resolver: LinkResolver, ins: Dict[str, Any], key: str) -> Any:
    if _is_link(ins.get(key)):
        return ins[key]
    hit = resolver.target(ins.get("guider"))
    if hit is None:
        return None
    guider_ins = _inputs(hit[1])
    if key == "positive":
        return guider_ins.get("positive") or guider_ins.get("conditioning")
    return guider_ins.get(key)


def _sampler_values(resolver: LinkResolver, node: Dict[str, Any]) -> Dict[str, Any]:
    ins = _inputs(node)

    def pick(keys: Tuple[str, ...], link_key: str, link_keys: Tuple[str, ...]) -> Any:
        value = resolver.scalar(_first_present(ins, keys), keys)
        if value is None:
            value = _via(resolver, ins, link_key, link_keys)
        return value

    return {
        "seed": pick(("seed", "noise_seed"), "noise", ("noise_seed", "seed")),
        "steps": pick(("steps",), "sigmas", ("steps",)),
        "cfg": pick(("cfg",), "guider", ("cfg",)),
        "sampler_name": pick(("sampler_name",), "sampler", ("sampler_name",)),
        "scheduler": pick(("scheduler",), "sigmas", ("scheduler",)),
        "denoise": pick(("denoise",), "sigmas", ("denoise",)),
        "positive": _guider_link(resolver, ins, "positive"),
        "negative": _guider_link(resolver, ins, "negative"),
        "latent": ins.get("latent_image") or ins.get("latent"),
    }


def _prompt_text(resolver: LinkResolver, link: Any, path: FrozenSet[str] = frozenset()) -> str:
    """Follow a conditioning reference back to its text, joining combined branches."""
    hit = resolver.target(link, path)
    if hit is None:
        return ""
    node_id, node = hit
    memo_key = ("prompt", node_id)
    if memo_key not in resolver.memo:
        resolver.memo[memo_key] = _node_prompt_text(resolver, _inputs(node), path | {node_id})
    return resolver.memo[memo_key]


def _node_prompt_text(resolver: LinkResolver, ins: Dict[str, Any], path: FrozenSet[str]) -> str:
    texts: List[str] = []
    for key in ("text", "text_g", "text_l", "string", "value"):
        value = ins.get(key)
        if _is_link(value):
            value = _prompt_text(resolver, value, path)
        if isinstance(value, str) and value.strip() and value.strip() not in texts:
            texts.append(value.strip())
    if texts:
        return ", ".join(texts)

    for key in ("conditioning", "conditioning_to", "conditioning_1", "conditioning_2", "conditioning_from"):
        text = _prompt_text(resolver, ins.get(key), path)
        if text and text not in texts:
            texts.append(text)
    return ", ".join(texts)


def _latent_size(resolver: LinkResolver, link: Any) -> Tuple[Any, Any]:
    path: FrozenSet[str] = frozenset()
    while True:
        hit = resolver.target(link, path)
        if hit is None:
            return None, None
        node_id, node = hit
        ins = _inputs(node)
        width = resolver.scalar(ins.get("width"), path=path | {node_id})
        height = resolver.scalar(ins.get("height"), path=path | {node_id})
        if width is not None and height is not None:
            return width, height
        path = path | {node_id}
        link = ins.get("samples") or ins.get("latent_image") or ins.get("latent")


def _initial_sampler(samplers: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not samplers:
        return None
    for values in samplers:
        if to_float(values.get("denoise")) == 1:
            return values
    return samplers[0]


# Parse -------------------------------------------------------------------------


def _extra_metadata(workflow: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Round-trip marker: metadata this tool chain stored in ``workflow.extra.extraMetadata``."""
    if not isinstance(workflow, dict):
        return None
    extra = workflow.get("extra")
    if not isinstance(extra, dict) or extra.get("extraMetadata") is None:
        return None
    return load_json_object(extra["extraMetadata"])


def parse_workflow_graph(prompt_value: Any, workflow_value: Any = None) -> Dict[str, Any]:
    """
    Parse ComfyUI prompt/workflow payloads (JSON text or already-decoded dicts).

    Raises:
        ValueError: malformed JSON, no usable graph, or an oversized graph.
    """
    prompt_graph = load_json_object(prompt_value)
    workflow = load_json_object(workflow_value)
    graph: Optional[WorkflowGraph] = build_workflow_graph(prompt_graph, workflow)
    if graph is None:
        raise ValueError("No ComfyUI graph found in prompt/workflow")

    resolver = LinkResolver(graph)
    collector = _ResourceCollector(resolver)
    samplers: List[Dict[str, Any]] = []
    for node_id in ordered_node_ids(graph):
        node = graph[node_id]
        collector.visit(node)
        if _is_sampler(node):
            samplers.append(_sampler_values(resolver, node))

    metadata: Dict[str, Any] = {}
    sampler = _initial_sampler(samplers)
    if sampler is not None:
        width, height = _latent_size(resolver, sampler["latent"])
        metadata.update(
            {
                "prompt": _prompt_text(resolver, sampler["positive"]),
                "negativePrompt": _prompt_text(resolver, sampler["negative"]),
                "cfgScale": sampler["cfg"],
                "steps": sampler["steps"],
                "seed": sampler["seed"],
                "sampler": sampler["sampler_name"],
                "scheduler": sampler["scheduler"],
                "denoise": sampler["denoise"],
                "width": width,
                "height": height,
            }
        )
    else:
        logger.debug("No sampler node in ComfyUI graph (%d nodes)", len(graph))

    metadata = {k: v for k, v in metadata.items() if v is not None}
    metadata["resources"] = collector.resources

    extra_metadata = _extra_metadata(workflow)
    if extra_metadata:
        metadata.update(extra_metadata)
    else:
        metadata["comfy"] = json.dumps({"prompt": prompt_graph, "workflow": workflow})
    return metadata


def encode_workflow_graph(meta: Mapping[str, Any]) -> str:
    """Serialized workflow JSON from a record's ``comfy`` field; "" when there is none."""
    comfy = meta.get("comfy")
    if comfy is None:
        return ""
    if isinstance(comfy, str):
        try:
            decoded = json.loads(comfy)
        except ValueError:
            return comfy
        if not isinstance(decoded, dict):
            return comfy
        comfy = decoded
    if not isinstance(comfy, dict):
        return ""
    workflow = comfy.get("workflow")
    return json.dumps(workflow) if workflow is not None else ""


# Descriptor hooks --------------------------------------------------------------


def _is_graph_blob(value: Any) -> bool:
    if isinstance(value, dict):
        return bool(value)
    return looks_like_json(value)


def _embedded_overlay(text: str) -> Optional[Dict[str, Any]]:
    stripped = strip_known_json_prefix(text)
    if not stripped:
        return None
    try:
        obj = load_json_object(stripped)
    except ValueError:
        return None
    if not obj:
        return None
    if any(obj.get(key) is not None for key in _GRAPH_FIELDS):
        return {key: obj[key] for key in _GRAPH_FIELDS if obj.get(key) is not None}
    if looks_like_comfyui_prompt_graph(obj) or looks_like_comfyui_workflow(obj):
        return {"prompt": obj, "workflow": obj}
    return None


def detect(raw: Mapping[str, Any]) -> DetectResult:
    if any(_is_graph_blob(raw.get(key)) for key in _GRAPH_FIELDS):
        return DetectResult.match()
    for key in _EMBEDDED_TEXT_FIELDS:
        value = raw.get(key)
        text = decode_user_comment(value) if key == "userComment" else value
        if not isinstance(text, str):
            continue
        overlay = _embedded_overlay(text)
        if overlay:
            return DetectResult.match(overlay)
    return DetectResult.no_match()


def parse(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return parse_workflow_graph(raw.get("prompt"), raw.get("workflow"))


def encode(meta: Mapping[str, Any]) -> str:
    return encode_workflow_graph(meta)
