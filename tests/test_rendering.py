from travel_copilot.agents.local_fallback import generate_local_response
from travel_copilot.rendering import extract_mode_content, parse_inline, render_message

TAGGED = "<PLANE>\nfly\n</PLANE>\n<TRAIN>\nride the rails\n</TRAIN>\n<BUS>\nroad trip\n</BUS>\n"


def test_extracts_active_mode_case_insensitively():
    assert extract_mode_content(TAGGED, "train") == "ride the rails"
    assert extract_mode_content(TAGGED, "BUS") == "road trip"


def test_falls_back_to_first_block_when_mode_missing():
    content = "<TRAIN>\nonly trains\n</TRAIN>\n"
    assert extract_mode_content(content, "plane") == "only trains"


def test_lowercase_tags_are_recognised():
    assert extract_mode_content("<bus>\nlegacy\n</bus>", "bus") == "legacy"


def test_untagged_content_is_returned_unchanged():
    legacy = "Travel Comparison: Pune to Goa\n---\nBook Bus: https://www.redbus.in/"
    assert extract_mode_content(legacy, "plane") == legacy


def test_extraction_is_idempotent():
    text = generate_local_response("from Pune to Goa", "train", 50).text
    once = extract_mode_content(text, "train")
    assert extract_mode_content(once, "train") == once
    assert "TRAIN Option" in once


def test_render_blocks():
    content = "<PLANE>\n### Heading **bold**\n* item one\n---\nplain [link](https://x.test)\n</PLANE>"
    blocks = render_message(content, "plane")

    assert [b.kind for b in blocks] == ["heading", "bullet", "rule", "paragraph"]
    assert blocks[0].spans[0].text == "Heading "
    assert blocks[0].spans[1].kind == "bold"
    assert blocks[1].spans[0].text == "item one"
    assert blocks[3].spans[1].kind == "link"
    assert blocks[3].spans[1].url == "https://x.test"


def test_parse_inline_handles_single_star_bold_and_links():
    spans = parse_inline("**Total Price:** ₹1,200 and *cheap* [Book](https://b.test)")

    kinds = [(s.kind, s.text) for s in spans]
    assert ("bold", "Total Price:") in kinds
    assert ("bold", "cheap") in kinds
    assert ("link", "Book") in kinds


def test_formatter_bullets_render_as_bullets():
    text = generate_local_response("from Pune to Goa", "plane", 50).text
    blocks = render_message(text, "plane")
    bullets = [b for b in blocks if b.kind == "bullet"]

    assert len(bullets) == 3
    assert bullets[0].spans[0].kind == "bold"
    assert bullets[0].spans[0].text == "Total Price:"
