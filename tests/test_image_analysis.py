from types import SimpleNamespace

import pytest

from draperads.services.image_analysis import (
    FALLBACK_SUGGESTIONS,
    ImageCopyAnalyzer,
    parse_suggestions,
)


def _analyzer(api_key="test-key"):
    return ImageCopyAnalyzer(api_key=api_key, model="test-model", max_tokens=256, timeout=5.0)


def _text_message(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture()
def image_path(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake")
    return path


def test_parse_suggestions_reads_json_wrapped_in_prose():
    text = (
        "Here you go:\n```json\n"
        '{"suggestedHeadline": " Bold mornings ", "suggestedPrimaryText": "Start strong.",'
        ' "suggestedDescription": "Roasted this week.", "suggestedCta": "shop_now"}\n```'
    )

    suggestions = parse_suggestions(text)

    assert suggestions.headline == "Bold mornings"
    assert suggestions.primary_text == "Start strong."
    assert suggestions.cta == "shop_now"


def test_parse_suggestions_defaults_missing_cta_to_learn_more():
    suggestions = parse_suggestions('{"suggestedHeadline": "Hi"}')

    assert suggestions.cta == "learn_more"
    assert suggestions.description == ""


def test_parse_suggestions_rejects_text_without_json():
    with pytest.raises(ValueError):
        parse_suggestions("I cannot help with that image.")


def test_analyze_returns_generated_suggestions(image_path):
    analyzer = _analyzer()
    seen = {}

    def fake_create_message(*, image_b64, media_type):
        seen["media_type"] = media_type
        seen["image_b64"] = image_b64
        return _text_message(
            '{"suggestedHeadline": "Catch the light", "suggestedPrimaryText": "Golden hour, every hour.",'
            ' "suggestedDescription": "Shop the collection.", "suggestedCta": "shop_now"}'
        )

    analyzer._create_message = fake_create_message  # type: ignore[method-assign]

    result = analyzer.analyze(image_path, "image/png")

    assert result.status == "generated"
    assert result.available is True
    assert result.suggestions.headline == "Catch the light"
    assert seen["media_type"] == "image/png"
    assert seen["image_b64"]


def test_analyze_falls_back_on_non_json_reply(image_path):
    analyzer = _analyzer()
    analyzer._create_message = lambda **_kwargs: _text_message("Nice photo!")  # type: ignore[method-assign]

    result = analyzer.analyze(image_path, "image/png")

    assert result.status == "unavailable"
    assert result.suggestions == FALLBACK_SUGGESTIONS


def test_analyze_falls_back_when_provider_raises(image_path):
    analyzer = _analyzer()

    def boom(**_kwargs):
        raise ConnectionError("provider down")

    analyzer._create_message = boom  # type: ignore[method-assign]

    result = analyzer.analyze(image_path, "image/png")

    assert result.status == "unavailable"
    assert result.suggestions.cta == "sign_up"


def test_analyze_without_api_key_never_calls_provider(image_path):
    analyzer = _analyzer(api_key=None)

    def fail(**_kwargs):
        raise AssertionError("provider must not be called without a key")

    analyzer._create_message = fail  # type: ignore[method-assign]

    result = analyzer.analyze(image_path, "image/png")

    assert result.status == "unavailable"


def test_analyze_sends_unknown_image_types_as_jpeg(image_path):
    analyzer = _analyzer()
    seen = {}

    def fake_create_message(*, image_b64, media_type):
        seen["media_type"] = media_type
        return _text_message('{"suggestedHeadline": "x"}')

    analyzer._create_message = fake_create_message  # type: ignore[method-assign]

    analyzer.analyze(image_path, "image/heic")

    assert seen["media_type"] == "image/jpeg"
