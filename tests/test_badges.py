from proofmark.services.provenance.badges import (
    BADGE_TEXT,
    embed_snippets,
    origin_label,
    render_badge_svg,
)


def test_origin_label():
    assert origin_label(True, "verified") == "Content Credentials verified"
    assert origin_label(False, "not_found") == "Fingerprinted (no C2PA)"
    assert origin_label(False, "invalid") == "Origin: invalid"


def test_svg_contains_text_and_trustmark():
    svg = render_badge_svg("AbCd1234", True, "verified")

    assert svg.startswith("<svg")
    assert BADGE_TEXT in svg
    assert "AbCd1234" in svg
    assert "Content Credentials verified" in svg


def test_svg_escapes_markup():
    svg = render_badge_svg("<x>", False, "a&b")

    assert "<x>" not in svg
    assert "&lt;x&gt;" in svg
    assert "a&amp;b" in svg


def test_embed_snippets():
    snippets = embed_snippets("https://pm.test", "https://api.pm.test", "AbCd1234")

    assert snippets["url"] == "/v1/badge/AbCd1234.svg"
    assert snippets["markdown"] == (
        f"[![{BADGE_TEXT}](https://api.pm.test/v1/badge/AbCd1234.svg)](https://pm.test/t/AbCd1234)"
    )
    assert 'href="https://pm.test/t/AbCd1234"' in snippets["html"]
    assert 'src="https://api.pm.test/v1/badge/AbCd1234.svg"' in snippets["html"]
