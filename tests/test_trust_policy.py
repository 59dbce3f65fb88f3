import time

import pytest

from mcplink.config.models import TrustLevel
from mcplink.mcp.types import CallResult, ImageBlock, RawBlock, ResourceBlock, TextBlock
from mcplink.security.trust import (
    IMAGE_REMOVED_NOTICE,
    SANITIZE_PREFIX,
    UNTRUSTED_PREFIX,
    apply_trust_policy,
    strip_dangerous,
    truncate,
)


def _result(*blocks, is_error=False):
    return CallResult(content=tuple(blocks), is_error=is_error)


def test_trusted_passes_text_and_images_through():
    image = ImageBlock(data="aGVsbG8=", mime_type="image/png")
    out = apply_trust_policy(_result(TextBlock("hi <b>there</b>"), image), TrustLevel.TRUSTED, 100)
    assert out.content == (TextBlock("hi <b>there</b>"), image)


def test_untrusted_prefixes_every_text_block():
    out = apply_trust_policy(_result(TextBlock("a"), TextBlock("b")), "untrusted", 100)
    assert [b.text for b in out.content] == [UNTRUSTED_PREFIX + "a", UNTRUSTED_PREFIX + "b"]


def test_sanitize_strips_markup_and_replaces_images():
    text = 'x<script>alert("boom")</script><b>bold</b> ![pic](http://e/x.png) data:image/png;base64,AAAA y'
    image = ImageBlock(data="AAAA", mime_type="image/png")
    out = apply_trust_policy(_result(TextBlock(text), image), TrustLevel.SANITIZE, 1000)

    first, second = out.content
    assert first.text.startswith(SANITIZE_PREFIX)
    body = first.text[len(SANITIZE_PREFIX):]
    assert "<" not in body
    assert "alert" not in body
    assert "bold" in body
    assert "[image removed]" in body
    assert "[data-uri removed]" in body
    assert "base64" not in body
    assert second == TextBlock(IMAGE_REMOVED_NOTICE)


def test_sanitize_does_not_reassemble_split_tags():
    assert "<script" not in strip_dangerous("<sc<script>ript>alert(1)").lower()
    assert "<" not in strip_dangerous("<<b>i>nested</i>")


def test_resource_becomes_text_for_every_posture():
    block = ResourceBlock(uri="file:///tmp/a.txt", text="contents")
    trusted = apply_trust_policy(_result(block), TrustLevel.TRUSTED, 100)
    assert trusted.content == (TextBlock("Resource: file:///tmp/a.txt\ncontents"),)

    untrusted = apply_trust_policy(_result(ResourceBlock(uri="u://x")), TrustLevel.UNTRUSTED, 100)
    assert untrusted.content == (TextBlock(UNTRUSTED_PREFIX + "Resource: u://x"),)


def test_raw_blocks_become_text_unless_trusted():
    raw = RawBlock(payload={"type": "audio", "data": "zzz"})
    assert apply_trust_policy(_result(raw), TrustLevel.TRUSTED, 100).content == (raw,)

    out = apply_trust_policy(_result(raw), TrustLevel.UNTRUSTED, 1000)
    assert isinstance(out.content[0], TextBlock)
    assert '"audio"' in out.content[0].text


def test_truncation_marker_and_limit():
    out = apply_trust_policy(_result(TextBlock("x" * 20)), TrustLevel.TRUSTED, 5)
    assert out.content[0].text == "xxxxx\n\n[...truncated at 5 chars]"


def test_truncate_is_idempotent():
    once = truncate("y" * 50, 10)
    assert truncate(once, 10) == once
    assert truncate("short", 10) == "short"


@pytest.mark.parametrize("trust", list(TrustLevel))
def test_error_flag_and_order_are_preserved(trust):
    blocks = (TextBlock("one"), TextBlock("two"))
    out = apply_trust_policy(_result(*blocks, is_error=True), trust, 100)
    assert out.is_error is True
    assert len(out.content) == 2
    assert out.content[0].text.endswith("one")
    assert out.content[1].text.endswith("two")


def test_sanitized_text_is_stable():
    once = strip_dangerous("<i>a</i> ![x](y) <script>z</script>")
    assert strip_dangerous(once) == once


def test_sanitize_div_yields_prefixed_text():
    out = apply_trust_policy(_result(TextBlock("<div>hi</div>")), TrustLevel.SANITIZE, 100)
    assert out.content == (TextBlock(SANITIZE_PREFIX + "hi"),)


def test_sanitize_image_becomes_single_notice():
    out = apply_trust_policy(_result(ImageBlock(data="AAAA", mime_type="image/png")), TrustLevel.SANITIZE, 100)
    assert out.content == (TextBlock(IMAGE_REMOVED_NOTICE),)


@pytest.mark.parametrize("trust", list(TrustLevel))
@pytest.mark.parametrize("text", ["plain", "<script>x</script>", "![a](b)", " "])
def test_non_empty_input_gives_non_empty_output(trust, text):
    out = apply_trust_policy(_result(TextBlock(text)), trust, 50)
    assert out.content
    assert all(b.text for b in out.content)


def test_sanitize_filters_resource_text():
    block = ResourceBlock(uri="u://x", text="<b>hi</b><script>x</script>")
    out = apply_trust_policy(_result(block), TrustLevel.SANITIZE, 100)
    assert out.content == (TextBlock(SANITIZE_PREFIX + "Resource: u://x\nhi"),)


def test_sanitize_truncates_the_filtered_text():
    out = apply_trust_policy(_result(TextBlock("<b>" * 10 + "abc")), TrustLevel.SANITIZE, 5)
    assert out.content == (TextBlock(SANITIZE_PREFIX + "abc"),)


@pytest.mark.parametrize(
    "text",
    [
        "<script " * 12_500,
        "<" * 100_000,
        "<a" * 50_000,
        "</script " * 11_000,
        "![" * 50_000,
        "![x](" * 20_000,
        "<" * 50_000 + "script" * 10_000,
        "x" + " " * 50_000 + "<scriptscript" * 5_000,
    ],
)
def test_sanitize_stays_fast_on_hostile_input(text):
    started = time.perf_counter()
    out = strip_dangerous(text)
    assert time.perf_counter() - started < 2.0
    assert "<script" not in out.lower()


def test_script_openers_spliced_by_removal_are_all_removed():
    assert strip_dangerous("<<<scriptscriptscript") == ""
    assert strip_dangerous("< <  script script") == ""
    assert strip_dangerous("a <SCRIPT b") == "a  b"


def test_nested_brackets_removed_in_one_span():
    assert strip_dangerous("<<<<x>y>z>w> ok") == "y>z>w> ok"
    assert strip_dangerous("a <> b") == "a <> b"
