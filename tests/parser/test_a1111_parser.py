import pytest

from sdmeta_backend.features.geninfo.a1111 import (
    EXCLUDED_KEYS,
    detect,
    generation_text_from_tags,
    parse,
    parse_generator_text,
)


def test_parse_basic_generation_text(a1111_text):
    meta = parse_generator_text(a1111_text)

    assert meta["prompt"] == "A beautiful landscape"
    assert meta["negativePrompt"] == "ugly, blurry"
    assert meta["steps"] == "20"
    assert meta["sampler"] == "Euler a"
    assert meta["cfgScale"] == "7"
    assert meta["seed"] == "12345"
    assert meta["Size"] == "512x512"
    assert meta["hashes"] == {"model": "1234abcd"}
    assert meta["resources"] == [{"type": "model", "name": "modelName", "hash": "1234abcd"}]


def test_lora_tag_merges_with_lora_hashes():
    text = '<lora:myStyle:0.8> a cat\nSteps: 20, Lora hashes: "myStyle: abc123"'
    meta = parse_generator_text(text)

    assert meta["resources"] == [{"type": "lora", "name": "myStyle", "weight": 0.8, "hash": "abc123"}]
    assert meta["hashes"] == {"lora:myStyle": "abc123"}
    assert "Lora hashes" not in meta
    assert meta["prompt"] == "<lora:myStyle:0.8> a cat"
    assert meta["negativePrompt"] == ""


def test_lora_hash_without_prompt_tag_adds_resource():
    meta = parse_generator_text('a cat\nSteps: 20, Lora hashes: "other: ff00"')
    assert meta["resources"] == [{"type": "lora", "name": "other", "hash": "ff00"}]


def test_hypernet_tags_and_fields():
    text = "<hypernet:toon:0.5> a dog\nSteps: 20, Hypernet: anime, Hypernet strength: 0.75"
    meta = parse_generator_text(text)
    assert meta["resources"] == [
        {"type": "hypernetwork", "name": "toon", "weight": 0.5},
        {"type": "hypernetwork", "name": "anime", "weight": 0.75},
    ]


def test_json_suffixes_are_extracted():
    text = (
        "a cat\n"
        'Steps: 20, Seed: 1, Hashes: {"model": "abc", "vae": "def",}, '
        'Civitai resources: [{"type":"checkpoint","modelVersionId":1}], '
        'Civitai metadata: {"remixOfId": 5}'
    )
    meta = parse_generator_text(text)

    assert meta["hashes"] == {"model": "abc", "vae": "def"}
    assert meta["civitaiResources"] == [{"type": "checkpoint", "modelVersionId": 1}]
    assert meta["extra"] == {"remixOfId": 5}
    assert meta["steps"] == "20"
    assert meta["seed"] == "1"
    assert "Hashes" not in meta


def test_malformed_hashes_json_raises():
    with pytest.raises(ValueError):
        parse_generator_text("a cat\nSteps: 20, Hashes: {bad json}")


def test_templates_are_dropped():
    text = "a cat\nTemplate: a __animal__\nmore template\nNegative prompt: ugly\nSteps: 20"
    meta = parse_generator_text(text)
    assert meta["prompt"] == "a cat"
    assert meta["negativePrompt"] == "ugly"


def test_bad_extensions_are_stripped():
    meta = parse_generator_text("a\nSteps: 20, Seed: 1, Hashed prompt: xyz, foo: bar")
    assert meta["seed"] == "1"
    assert "foo" not in meta
    assert "Hashed prompt" not in meta


def test_vae_hash_goes_to_hash_table():
    meta = parse_generator_text("a\nSteps: 20, VAE hash: 735e4c3a44, VAE: sdxl_vae.safetensors")
    assert meta["hashes"] == {"vae": "735e4c3a44"}
    assert "VAE hash" not in meta
    assert meta["VAE"] == "sdxl_vae.safetensors"


def test_addnet_slots():
    text = (
        "a\nSteps: 20, AddNet Enabled: True, AddNet Module 1: LoRA, AddNet Model 1: detail(abc123), "
        "AddNet Weight 1: 0.6, AddNet Module 2: LoRA, AddNet Model 2: plainname, AddNet Weight 2: 1"
    )
    meta = parse_generator_text(text)
    assert meta["resources"] == [
        {"type": "lora", "name": "detail", "weight": 0.6, "hash": "abc123"},
        {"type": "lora", "name": "plainname", "weight": 1.0},
    ]


def test_excluded_keys_never_leak():
    meta = parse_generator_text("a\nSteps: 20, scheduler: karras, denoise: 0.5, Schedule type: Karras")
    assert "scheduler" not in meta
    assert "denoise" not in meta
    assert meta["Schedule type"] == "Karras"
    assert "scheduler" in EXCLUDED_KEYS


def test_multiline_prompt_and_negative():
    meta = parse_generator_text("line one\nline two\nNegative prompt: bad\nworse\nSteps: 4")
    assert meta["prompt"] == "line one\nline two"
    assert meta["negativePrompt"] == "bad\nworse"


def test_text_without_details_line():
    meta = parse_generator_text("just a prompt")
    assert meta["prompt"] == "just a prompt"
    assert meta["resources"] == []


def test_generation_text_lookup_order():
    assert generation_text_from_tags({"parameters": "p", "generationDetails": "g"}) == "g"
    assert generation_text_from_tags({"parameters": " ", "userComment": "u"}) == "u"
    assert generation_text_from_tags({}) is None


def test_detect_decodes_user_comment():
    payload = b"UNICODE\x00" + "a cat\nSteps: 20".encode("utf-16-be")
    verdict = detect({"userComment": payload})
    assert verdict.matched
    assert verdict.overlay["generationDetails"] == "a cat\nSteps: 20"


def test_detect_requires_steps_marker():
    assert not detect({"parameters": "no marker here"}).matched


def test_parse_reads_overlay_field():
    meta = parse({"generationDetails": "a cat\nSteps: 3"})
    assert meta["steps"] == "3"
