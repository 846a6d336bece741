from garden_core.domain.models import Content, GenerateRequest, InlineData, Part


def test_text_only_request_has_no_generation_config():
    req = GenerateRequest(contents=[Content(role="user", parts=[Part(text="hi")])])
    assert req.to_payload() == {"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}


def test_inline_data_serialized_camel_case():
    part = Part(inline_data=InlineData(mime_type="image/png", data="AAAA"))
    req = GenerateRequest(contents=[Content(role="user", parts=[part])], response_mime_type="application/json")
    payload = req.to_payload()
    assert payload["contents"][0]["parts"][0] == {"inlineData": {"mimeType": "image/png", "data": "AAAA"}}
    assert payload["generationConfig"] == {"responseMimeType": "application/json"}
