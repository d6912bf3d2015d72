from __future__ import annotations

from html.parser import HTMLParser
from typing import List, Optional

from .logger import get_logger
from .model import HEADLINE_TYPE, TEXT, TEXT_TYPE, Node

logger = get_logger(__name__)

MAIN_COLLECTION = "main"

_BLOCK_TAGS = {
    "p",
    "div",
    "br",
    "li",
    "ul",
    "ol",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "blockquote",
    "pre",
    "table",
    "tr",
}


class _TextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self.in_script = False
        self.in_style = False
        self.parts: List[str] = []

    def handle_starttag(self, tag, attrs):
        tag_lower = tag.lower()
        if tag_lower == "script":
            self.in_script = True
        elif tag_lower == "style":
            self.in_style = True
        elif tag_lower in _BLOCK_TAGS:
            self.parts.append("\n")

    def handle_endtag(self, tag):
        tag_lower = tag.lower()
        if tag_lower == "script":
            self.in_script = False
        elif tag_lower == "style":
            self.in_style = False
        elif tag_lower in _BLOCK_TAGS:
            self.parts.append("\n")

    def handle_data(self, data):
        if self.in_script or self.in_style:
            return
        self.parts.append(data)


def strip_tags(html: str) -> str:
    """Drop markup (and script/style bodies), keep one line per block element."""
    if not html:
        return ""
    parser = _TextParser()
    try:
        parser.feed(html)
        parser.close()
    except Exception as e:  # noqa: BLE001
        logger.warning(f"Failed to parse HTML fragment: {e}")
    lines = (" ".join(line.split()) for line in "".join(parser.parts).splitlines())
    return "\n".join(line for line in lines if line)


def _collect_text(node: Node, chunks: List[str]) -> None:
    if node.is_of_type(TEXT_TYPE) or node.is_of_type(HEADLINE_TYPE):
        raw = node.get_property(TEXT)
        if raw:
            text = strip_tags(str(raw))
            if text:
                chunks.append(text)
    for child in node.children():
        _collect_text(child, chunks)


def extract_page_content(page: Node, collection: str = MAIN_COLLECTION) -> str:
    """
    Body text of a page: the text/headline nodes below its ``main`` content
    collection, depth-first, separated by blank lines.
    """
    main: Optional[Node] = page.child(collection)
    if main is None:
        return ""
    chunks: List[str] = []
    _collect_text(main, chunks)
    return "\n\n".join(chunks).strip()
