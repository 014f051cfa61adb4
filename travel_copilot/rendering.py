"""Chat transcript rendering: mode selection plus a small markdown subset."""
from __future__ import annotations

import re
from typing import List

from travel_copilot.schemas import RenderedBlock, RenderedSpan, TRANSPORT_MODES

_ANY_BLOCK_RE = re.compile(r"<([A-Z]+)>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_INLINE_RE = re.compile(r"(\*\*.*?\*\*|\*.*?\*|\[.*?\]\(.*?\))")
_LINK_RE = re.compile(r"\[(.*?)\]\((.*?)\)", re.DOTALL)


def extract_mode_content(content: str, mode: str | None) -> str:
    """Return the part of a tagged response meant for ``mode``.

    Falls back to the first tagged block of any mode, and returns untagged
    content unchanged, so applying it twice is a no-op.
    """
    content = content or ""
    lowered = content.lower()
    if not any(f"<{tag}>" in lowered for tag in TRANSPORT_MODES):
        return content

    tag = (mode or "plane").upper()
    match = re.search(rf"<{tag}>(.*?)</{tag}>", content, re.IGNORECASE | re.DOTALL)
    if match:
        return match.group(1).strip()
    any_match = _ANY_BLOCK_RE.search(content)
    return any_match.group(2).strip() if any_match else content


def render_message(content: str, mode: str | None) -> List[RenderedBlock]:
    blocks: List[RenderedBlock] = []
    for line in extract_mode_content(content, mode).split("\n"):
        stripped = line.strip()
        if stripped.startswith("###"):
            blocks.append(RenderedBlock(kind="heading", spans=parse_inline(re.sub(r"^###\s*", "", stripped))))
        elif stripped.startswith("* ") or stripped.startswith("- "):
            blocks.append(RenderedBlock(kind="bullet", spans=parse_inline(re.sub(r"^[*\-]\s*", "", stripped))))
        elif stripped == "---":
            blocks.append(RenderedBlock(kind="rule"))
        else:
            blocks.append(RenderedBlock(kind="paragraph", spans=parse_inline(line)))
    return blocks


def parse_inline(text: str) -> List[RenderedSpan]:
    """Split ``text`` into plain, bold (``**x**`` / ``*x*``) and link spans."""
    spans: List[RenderedSpan] = []
    for idx, part in enumerate(_INLINE_RE.split(text)):
        if not part:
            continue
        if idx % 2 == 0:
            spans.append(RenderedSpan(kind="text", text=part))
        elif part.startswith("["):
            link = _LINK_RE.fullmatch(part)
            spans.append(RenderedSpan(kind="link", text=link.group(1), url=link.group(2)))
        elif part.startswith("**"):
            spans.append(RenderedSpan(kind="bold", text=part[2:-2]))
        else:
            spans.append(RenderedSpan(kind="bold", text=part[1:-1]))
    return spans
