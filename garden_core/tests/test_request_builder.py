import base64
import io

import pytest

from garden_core.domain.exceptions import EncodingError
from garden_core.scan.request_builder import (
    ANALYSIS_RESPONSE_SCHEMA,
    MultimodalRequestBuilder,
)


PNG = b"\x89PNG\r\n\x1a\nfake"


def test_build_payload_shape():
    req = MultimodalRequestBuilder().build(PNG, "image/jpeg", "Analyze this.", ANALYSIS_RESPONSE_SCHEMA)
    payload = req.to_payload()
    parts = payload["contents"][0]["parts"]
    assert payload["contents"][0]["role"] == "user"
    assert parts[0] == {"text": "Analyze this."}
    assert parts[1]["inlineData"]["mimeType"] == "image/jpeg"
    assert base64.b64decode(parts[1]["inlineData"]["data"]) == PNG
    assert payload["generationConfig"]["responseMimeType"] == "application/json"
    assert payload["generationConfig"]["responseSchema"]["required"] == [
        "health_percentage",
        "predicted_disease",
        "home_remedies",
    ]
    assert "systemInstruction" not in payload


def test_mime_type_defaults_to_png():
    req = MultimodalRequestBuilder().build(PNG, None, "x")
    assert req.contents[0].parts[1].inline_data.mime_type == "image/png"


def test_mime_type_guessed_from_path(tmp_path):
    path = tmp_path / "leaf.jpg"
    path.write_bytes(PNG)
    req = MultimodalRequestBuilder().build(path, None, "x")
    assert req.contents[0].parts[1].inline_data.mime_type == "image/jpeg"


def test_file_like_source():
    req = MultimodalRequestBuilder().build(io.BytesIO(PNG), "image/webp", "x")
    assert base64.b64decode(req.contents[0].parts[1].inline_data.data) == PNG


@pytest.mark.parametrize(
    "source",
    [b"", "/definitely/not/here.png", io.StringIO("text"), 12345],
)
def test_unreadable_sources_raise_encoding_error(source):
    with pytest.raises(EncodingError):
        MultimodalRequestBuilder().build(source, None, "x")
