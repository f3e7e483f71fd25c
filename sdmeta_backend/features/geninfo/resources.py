"""Resource assembly for A1111 generation text (extra networks, hash tables, AddNet slots)."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ...utils import to_float

Resource = Dict[str, Any]

_EXTRA_NETS_RE = re.compile(r"<(lora|hypernet):([a-zA-Z0-9_.\-]+):([0-9.]+)>")
_NAME_HASH_RE = re.compile(r"([a-zA-Z0-9_.]+)\(([a-zA-Z0-9]+)\)")

# Prompt tag kinds -> resource types
_EXTRA_NET_TYPES = {"lora": "lora", "hypernet": "hypernetwork"}


def _resource(type_: str, name: str, weight: Optional[float] = None, hash_: Optional[str] = None) -> Resource:
    out: Resource = {"type": type_, "name": name}
    if weight is not None:
        out["weight"] = weight
    if hash_ is not None:
        out["hash"] = hash_
    return out


def _leading_float(value: Any) -> Optional[float]:
    """parseFloat-style: '0.8.1' -> 0.8."""
    if value is None:
        return None
    match = re.match(r"\s*[-+]?(?:\d+\.?\d*|\.\d+)", str(value))
    return to_float(match.group(0)) if match else None


def parse_extra_networks(prompt: str) -> List[Resource]:
    """``<lora:name:0.8>`` tags embedded in the prompt, in order of appearance."""
    resources: List[Resource] = []
    for kind, name, weight in _EXTRA_NETS_RE.findall(prompt or ""):
        resources.append(_resource(_EXTRA_NET_TYPES[kind], name, _leading_float(weight)))
    return resources


def _find_by_name(resources: List[Resource], name: str) -> Optional[Resource]:
    for resource in resources:
        if resource.get("name") == name:
            return resource
    return None


def _ensure_hashes(metadata: Dict[str, Any]) -> Dict[str, Any]:
    hashes = metadata.get("hashes")
    if not isinstance(hashes, dict):
        hashes = {}
        metadata["hashes"] = hashes
    return hashes


def merge_lora_hashes(metadata: Dict[str, Any], resources: List[Resource]) -> None:
    lora_hashes = metadata.pop("Lora hashes", None)
    if not isinstance(lora_hashes, dict) or not lora_hashes:
        return
    hashes = _ensure_hashes(metadata)
    for name, hash_ in lora_hashes.items():
        hash_ = str(hash_)
        hashes[f"lora:{name}"] = hash_
        existing = _find_by_name(resources, name)
        if existing is not None:
            existing["hash"] = hash_
        else:
            resources.append(_resource("lora", name, hash_=hash_))


def apply_vae_hash(metadata: Dict[str, Any]) -> None:
    vae_hash = metadata.pop("VAE hash", None)
    if vae_hash:
        _ensure_hashes(metadata)["vae"] = str(vae_hash)


def apply_model(metadata: Dict[str, Any], resources: List[Resource]) -> None:
    model = metadata.get("Model")
    model_hash = metadata.get("Model hash")
    if not model or not model_hash:
        return
    hashes = _ensure_hashes(metadata)
    hashes.setdefault("model", str(model_hash))
    resources.append(_resource("model", str(model), hash_=str(model_hash)))


def apply_hypernetwork(metadata: Dict[str, Any], resources: List[Resource]) -> None:
    name = metadata.get("Hypernet")
    strength = metadata.get("Hypernet strength")
    if not name or not strength:
        return
    resources.append(_resource("hypernetwork", str(name), _leading_float(strength)))


def _split_name_hash(fullname: str) -> tuple[str, Optional[str]]:
    match = _NAME_HASH_RE.search(fullname)
    if not match:
        return fullname.strip(), None
    return match.group(1), match.group(2)


def apply_addnet(metadata: Dict[str, Any], resources: List[Resource]) -> None:
    if metadata.get("AddNet Enabled") != "True":
        return
    i = 1
    while True:
        fullname = metadata.get(f"AddNet Model {i}")
        if not fullname:
            break
        name, hash_ = _split_name_hash(str(fullname))
        module = str(metadata.get(f"AddNet Module {i}") or "LoRA").lower()
        resources.append(_resource(module, name, _leading_float(metadata.get(f"AddNet Weight {i}")), hash_))
        i += 1


def assemble_resources(metadata: Dict[str, Any], prompt: str) -> List[Resource]:
    """Run every resource step in order; mutates ``metadata`` (hash tables, consumed keys)."""
    resources = parse_extra_networks(prompt)
    merge_lora_hashes(metadata, resources)
    apply_vae_hash(metadata)
    apply_model(metadata, resources)
    apply_hypernetwork(metadata, resources)
    apply_addnet(metadata, resources)
    return resources
