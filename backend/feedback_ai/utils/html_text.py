"""HTML → plain text for page scraping.

Pure string transform: no network, no parser state, same input same output.
Block-level structure survives as line breaks; everything else is flattened.
"""

import re

_DROP_BLOCKS = (
    re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<!--.*?-->", re.DOTALL),
    re.compile(r"<noscript\b[^>]*>.*?</noscript\s*>", re.IGNORECASE | re.DOTALL),
)

BLOCK_TAGS = (
    "br", "hr", "p", "div", "li", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "blockquote", "section", "article",
    "table", "thead", "tbody", "tfoot",
)

_BLOCK_TAG_RE = re.compile(
    r"</?(?:" + "|".join(BLOCK_TAGS) + r")\b[^>]*>",
    re.IGNORECASE,
)
_ANY_TAG_RE = re.compile(r"<[^>]+>")

_NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
}
_ENTITY_RE = re.compile(r"&(?:(amp|lt|gt|quot|apos|nbsp)|#(\d+)|#[xX]([0-9a-fA-F]+));")

_HORIZONTAL_WS_RE = re.compile(r"[ \t\f\v\r\u00a0]+")


def _decode_entity(match: re.Match) -> str:
    name, dec, hexa = match.groups()
    if name:
        return _NAMED_ENTITIES[name]
    code = int(dec) if dec else int(hexa, 16)
    if code == 0 or code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
        return "\ufffd"
    return chr(code)


def decode_entities(text: str) -> str:
    # Single pass, so "&amp;lt;" decodes to "&lt;" and not "<".
    return _ENTITY_RE.sub(_decode_entity, text)


def html_to_text(html: str | None) -> str:
    if not html:
        return ""

    text = html
    for pattern in _DROP_BLOCKS:
        text = pattern.sub("", text)

    text = _BLOCK_TAG_RE.sub("\n", text)
    text = _ANY_TAG_RE.sub(" ", text)
    text = decode_entities(text)
    text = _HORIZONTAL_WS_RE.sub(" ", text)

    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)
