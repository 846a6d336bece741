import json

import pytest

from garden_core.domain.exceptions import EmptyResponseError, SchemaViolationError
from garden_core.scan.decoder import StructuredResponseDecoder, extract_text, parse_json_object


def envelope(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


GOOD = {
    "health_percentage": 72,
    "predicted_disease": "Leaf Blight",
    "home_remedies": [
        "Your plant shows early leaf blight.",
        "Spray a baking soda solution weekly.",
        "Remove affected leaves.",
    ],
}


def test_decode_valid_result():
    result = StructuredResponseDecoder().decode(envelope(json.dumps(GOOD)))
    assert result.health_percentage == 72
    assert result.predicted_disease == "Leaf Blight"
    assert result.remedies[0] == "Your plant shows early leaf blight."
    assert not result.is_healthy
    assert result.remedies_heading == "DIY Home Remedies"
    assert result.health_band == "fair"


def test_decode_rejects_wrong_type_health():
    body = dict(GOOD, health_percentage="high")
    with pytest.raises(SchemaViolationError) as exc_info:
        StructuredResponseDecoder().decode(envelope(json.dumps(body)))
    assert "health_percentage" in exc_info.value.extra["fields"]


def test_decode_rejects_boolean_health():
    body = dict(GOOD, health_percentage=True)
    with pytest.raises(SchemaViolationError):
        StructuredResponseDecoder().decode(envelope(json.dumps(body)))


def test_decode_rejects_missing_field():
    body = {k: v for k, v in GOOD.items() if k != "home_remedies"}
    with pytest.raises(SchemaViolationError):
        StructuredResponseDecoder().decode(envelope(json.dumps(body)))


def test_decode_without_candidates_is_empty_response():
    with pytest.raises(EmptyResponseError):
        StructuredResponseDecoder().decode({"candidates": []})
    with pytest.raises(EmptyResponseError):
        StructuredResponseDecoder().decode({})


def test_decode_blank_text_is_empty_response():
    with pytest.raises(EmptyResponseError):
        StructuredResponseDecoder().decode(envelope("   "))


def test_decode_non_json_text_is_schema_violation():
    with pytest.raises(SchemaViolationError):
        StructuredResponseDecoder().decode(envelope("The plant looks fine to me."))


def test_decode_keeps_out_of_range_health_and_rounds_floats():
    result = StructuredResponseDecoder().decode(envelope(json.dumps(dict(GOOD, health_percentage=120))))
    assert result.health_percentage == 120
    assert result.health_band == "good"
    result = StructuredResponseDecoder().decode(envelope(json.dumps(dict(GOOD, health_percentage=41.6))))
    assert result.health_percentage == 42
    assert result.health_band == "poor"


def test_healthy_sentinel_is_case_insensitive():
    body = dict(GOOD, predicted_disease="HEALTHY", health_percentage=95)
    result = StructuredResponseDecoder().decode(envelope(json.dumps(body)))
    assert result.is_healthy
    assert result.remedies_heading == "General Care Tips"


def test_parse_json_object_tolerates_fences_and_prose():
    fenced = "```json\n" + json.dumps(GOOD) + "\n```"
    assert parse_json_object(fenced)["health_percentage"] == 72
    prose = 'Here is the result: {"a": {"b": "x}"}} thanks'
    assert parse_json_object(prose) == {"a": {"b": "x}"}}
    assert parse_json_object("[1, 2]") is None


def test_extract_text_reads_first_candidate_only():
    env = {
        "candidates": [
            {"content": {"parts": [{"text": "first"}, {"text": "second"}]}},
            {"content": {"parts": [{"text": "other"}]}},
        ]
    }
    assert extract_text(env) == "first"


@pytest.mark.parametrize("raw", ['"health_percentage": Infinity', '"health_percentage": -Infinity',
                                 '"health_percentage": NaN', '"health_percentage": 1e400'])
def test_decode_rejects_non_finite_health(raw):
    text = '{' + raw + ', "predicted_disease": "Rust", "home_remedies": ["a", "b", "c"]}'
    with pytest.raises(SchemaViolationError) as exc_info:
        StructuredResponseDecoder().decode(envelope(text))
    assert exc_info.value.extra["fields"] == ["health_percentage"]


def test_decode_rejects_blank_disease_and_remedies():
    with pytest.raises(SchemaViolationError) as exc_info:
        StructuredResponseDecoder().decode(envelope(json.dumps(dict(GOOD, predicted_disease="   "))))
    assert exc_info.value.extra["fields"] == ["predicted_disease"]

    with pytest.raises(SchemaViolationError) as exc_info:
        StructuredResponseDecoder().decode(envelope(json.dumps(dict(GOOD, home_remedies=["a", "", "c"]))))
    assert exc_info.value.extra["fields"] == ["home_remedies"]

    with pytest.raises(SchemaViolationError):
        StructuredResponseDecoder().decode(envelope(json.dumps(dict(GOOD, home_remedies=["a", " \n", "c"]))))


def test_decode_strips_surrounding_whitespace():
    body = dict(GOOD, predicted_disease="  Healthy ", home_remedies=[" a ", "b", "c"])
    result = StructuredResponseDecoder().decode(envelope(json.dumps(body)))
    assert result.predicted_disease == "Healthy"
    assert result.remedies[0] == "a"
    assert result.is_healthy
