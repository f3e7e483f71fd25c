from __future__ import annotations

import io
import json

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from sdmeta_backend import embed_metadata, extract, read_raw_tags


def _png_bytes(pnginfo: PngInfo | None = None) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (16, 8), "black").save(buf, format="PNG", pnginfo=pnginfo)
    return buf.getvalue()


def test_read_png_text_chunks(tmp_path, ksampler_graph):
    pnginfo = PngInfo()
    pnginfo.add_text("parameters", "a cat\nSteps: 20, Sampler: Euler")
    pnginfo.add_text("prompt", json.dumps(ksampler_graph))
    img_path = tmp_path / "gen.png"
    img_path.write_bytes(_png_bytes(pnginfo))

    tags = read_raw_tags(str(img_path))
    assert tags["parameters"] == "a cat\nSteps: 20, Sampler: Euler"
    assert json.loads(tags["prompt"]) == ksampler_graph

    record = extract(tags)
    assert record["prompt"] == "a cat"
    assert record["sampler"] == "Euler"


def test_read_jpeg_user_comment(tmp_path):
    exif = Image.Exif()
    exif[0x010E] = "a description"
    exif[0x9286] = b"UNICODE\x00" + "a dog\nSteps: 12".encode("utf-16-be")
    img_path = tmp_path / "gen.jpg"
    Image.new("RGB", (16, 8), "white").save(img_path, format="JPEG", exif=exif)

    tags = read_raw_tags(str(img_path))
    assert "imageDescription" not in tags
    assert isinstance(tags["userComment"], bytes)

    record = extract(tags)
    assert record["prompt"] == "a dog"
    assert record["steps"] == 12


def test_read_raw_tags_failure_is_empty(tmp_path):
    bogus = tmp_path / "not-an-image.png"
    bogus.write_bytes(b"definitely not a png")
    assert read_raw_tags(str(bogus)) == {}
    assert read_raw_tags(str(tmp_path / "missing.png")) == {}


def test_embed_round_trip():
    pnginfo = PngInfo()
    pnginfo.add_text("Software", "sdmeta-tests")
    out = embed_metadata(_png_bytes(pnginfo), {"prompt": "a cat", "steps": 20, "resources": []})

    tags = read_raw_tags(io.BytesIO(out))
    assert tags["parameters"] == "a cat\nSteps: 20"
    assert tags["Software"] == "sdmeta-tests"
    assert extract(tags)["steps"] == 20


def test_embed_without_prompt_stores_json():
    out = embed_metadata(_png_bytes(), {"seed": 5})
    assert json.loads(read_raw_tags(io.BytesIO(out))["parameters"]) == {"seed": 5}


def test_embed_unsupported_inputs_are_returned_unchanged():
    png = _png_bytes()
    assert embed_metadata(png, {"prompt": "a"}, fmt="jpeg") is png

    garbage = b"not an image"
    assert embed_metadata(garbage, {"prompt": "a"}) is garbage

    jpeg = io.BytesIO()
    Image.new("RGB", (4, 4)).save(jpeg, format="JPEG")
    assert embed_metadata(jpeg.getvalue(), {"prompt": "a"}) == jpeg.getvalue()
