import copy
import json

import pytest

from sdmeta_backend import encode, extract, extract_metadata, parse_generator_text
from sdmeta_backend.features.metadata import extractor_registry
from sdmeta_backend.features.metadata.descriptor import DetectResult, ParserDescriptor
from sdmeta_backend.shared import DialectId, ErrorCode


def test_extract_generation_text(a1111_text):
    record = extract({"parameters": a1111_text})

    assert record["prompt"] == "A beautiful landscape"
    assert record["negativePrompt"] == "ugly, blurry"
    assert record["steps"] == 20
    assert record["cfgScale"] == 7
    assert record["seed"] == 12345
    assert record["sampler"] == "Euler a"
    assert {"type": "model", "name": "modelName", "hash": "1234abcd"} in record["resources"]
    assert record["Size"] == "512x512"


def test_extract_lora_example():
    record = extract({"parameters": '<lora:myStyle:0.8> a cat\nSteps: 20, Lora hashes: "myStyle: abc123"'})
    assert record["resources"] == [{"type": "lora", "name": "myStyle", "weight": 0.8, "hash": "abc123"}]
    assert record["hashes"] == {"lora:myStyle": "abc123"}


def test_extract_workflow_graph(ksampler_graph):
    record = extract({"prompt": json.dumps(ksampler_graph)})
    assert record["prompt"] == "a cat"
    assert record["steps"] == 25
    assert record["cfgScale"] == 6.5
    assert record["resources"] == [{"type": "model", "name": "sdxl"}]
    assert isinstance(record["comfy"], str)


def test_extract_embedded_workflow(ksampler_graph):
    record = extract({"parameters": "prompt: " + json.dumps(ksampler_graph)})
    assert record["prompt"] == "a cat"


def test_extract_user_comment_bytes():
    payload = list(b"\xfe\xff" + "a\nSteps: 20".encode("utf-16-be"))
    record = extract({"userComment": payload})
    assert record["prompt"] == "a"
    assert record["steps"] == 20


@pytest.mark.parametrize("raw", [{}, {"Software": "GIMP"}, {"parameters": "no details"}, None, "text"])
def test_unrecognized_input_yields_empty_record(raw):
    assert extract(raw) == {}


def test_malformed_workflow_json_yields_empty_record():
    raw = {"workflow": '{"nodes": [ {"id": 1,'}
    assert extract(raw) == {}
    assert extract_metadata(raw).code == ErrorCode.PARSE_ERROR.value


def test_schema_violation_yields_empty_record():
    raw = {"parameters": "a\nSteps: abc"}
    assert extract(raw) == {}
    assert extract_metadata(raw).code == ErrorCode.SCHEMA_VIOLATION.value


def test_parser_without_fields_is_no_match(monkeypatch):
    empty = ParserDescriptor(DialectId.AUTOMATIC, lambda raw: DetectResult.match(), lambda raw: {}, lambda meta: "")
    monkeypatch.setattr(extractor_registry, "PARSERS", (empty,))

    res = extract_metadata({"parameters": "anything"})
    assert res.code == ErrorCode.NO_MATCH.value
    assert res.meta["dialect"] == "automatic"
    assert extract({"parameters": "anything"}) == {}


def test_extract_metadata_codes(a1111_text):
    assert extract_metadata({}).code == ErrorCode.NO_MATCH.value
    assert extract_metadata(None).code == ErrorCode.INVALID_INPUT.value  # type: ignore[arg-type]

    res = extract_metadata({"parameters": a1111_text})
    assert res.ok
    assert res.meta["dialect"] == "automatic"


def test_extract_is_idempotent_and_pure(ksampler_graph):
    graph = copy.deepcopy(ksampler_graph)
    graph["5"]["inputs"]["cfg"] = float("nan")
    raw = {"prompt": json.dumps(graph), "parameters": None}
    snapshot = copy.deepcopy(raw)

    first = extract(raw)
    second = extract(raw)
    assert first == second
    assert "cfgScale" not in first
    assert raw == snapshot

    first["prompt"] = "changed"
    assert extract(raw)["prompt"] == "a cat"


def test_generation_text_round_trip_is_lossy(a1111_text):
    record = extract({"parameters": a1111_text})
    text = encode(record)
    lines = text.split("\n")

    assert lines[0] == "A beautiful landscape"
    assert lines[1] == "Negative prompt: ugly, blurry"
    assert lines[2].startswith("Steps: 20, ")
    assert set(lines[2].split(", ")) == {
        "Steps: 20",
        "CFG scale: 7",
        "Sampler: Euler a",
        "Seed: 12345",
        "Size: 512x512",
        "Model hash: 1234abcd",
        "Model: modelName",
    }

    again = extract({"parameters": text})
    for key in ("prompt", "negativePrompt", "steps", "cfgScale", "seed", "sampler"):
        assert again[key] == record[key]


def test_round_trip_drops_hash_tables_and_json_blocks():
    source = (
        '<lora:myStyle:0.8> a cat\nSteps: 20, Lora hashes: "myStyle: abc123", '
        'Civitai resources: [{"modelVersionId": 1}], Civitai metadata: {"remixOfId": 5}'
    )
    record = extract({"parameters": source})
    assert record["civitaiResources"] == [{"modelVersionId": 1}]
    assert record["extra"] == {"remixOfId": 5}

    text = encode(record)
    assert "hashes" not in text.lower()
    assert "Civitai" not in text

    again = extract({"parameters": text})
    assert again["resources"] == [{"type": "lora", "name": "myStyle", "weight": 0.8}]
    assert "hashes" not in again
    assert "extra" not in again


def test_encode_comfy_dialect(ksampler_graph):
    workflow = {"nodes": [{"id": 1, "type": "KSampler"}], "links": []}
    record = extract({"prompt": json.dumps(ksampler_graph), "workflow": json.dumps(workflow)})
    assert json.loads(encode(record, "comfy")) == workflow


def test_encode_unknown_dialect():
    with pytest.raises(ValueError):
        encode({"prompt": "a"}, "novelai")


def test_encode_skips_missing_values():
    assert encode({"prompt": "a cat", "seed": None}) == "a cat"
    assert encode({"prompt": "a", "steps": 4, "Lora hashes": {"x": "1"}}) == 'a\nSteps: 4, Lora hashes: "x: 1"'


def test_parse_generator_text_is_not_normalized():
    assert parse_generator_text("a\nSteps: 20")["steps"] == "20"
