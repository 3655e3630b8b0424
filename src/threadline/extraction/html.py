"""HTML helpers shared by the extraction cascades."""

import re
from dataclasses import dataclass

import lxml.html
from lxml import etree

_TAG = re.compile(r"<[^>]+>")
_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")

_ENTITIES = {"&nbsp;": " ", "&amp;": "&", "&lt;": "<", "&gt;": ">", "&quot;": '"', "&#39;": "'"}


@dataclass(frozen=True)
class EmailSource:
    """The parts of an inbound email the cascades look at."""

    sender: str = ""
    subject: str = ""
    html: str = ""
    text: str = ""

    @property
    def raw(self) -> str:
        return f"{self.html}\n{self.text}"


def collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def parse_document(html: str):
    """Parse ``html`` with script and style elements removed. None if unparseable."""
    if not html or not html.strip():
        return None
    try:
        doc = lxml.html.document_fromstring(html)
    except (etree.ParserError, ValueError):
        return None
    for element in doc.xpath("//script|//style"):
        element.drop_tree()
    return doc


def strip_tags(html: str) -> str:
    """Regex tag strip for text that must keep its position relative to markup.

    Script and style blocks and HTML comments are removed first.
    """
    text = _COMMENT.sub(" ", html)
    text = _SCRIPT_STYLE.sub(" ", text)
    text = _TAG.sub(" ", text)
    for entity, char in _ENTITIES.items():
        text = text.replace(entity, char)
    return collapse(text)


def html_text(html: str) -> str:
    """Visible text of ``html`` with one line per block element."""
    doc = parse_document(html)
    if doc is None:
        return ""
    for br in doc.xpath("//br"):
        br.tail = "\n" + (br.tail or "")
    for block in doc.xpath("//p|//div|//td|//tr|//li|//h1|//h2|//h3"):
        block.tail = "\n" + (block.tail or "")
    return doc.text_content()


def body_text(source: EmailSource) -> str:
    """Plain text of the email. Prefers the text part over the HTML."""
    if source.text.strip():
        return source.text
    return html_text(source.html)


def extract_links(html: str) -> list[str]:
    """All absolute links in the email.

    Figma image URLs carrying comment coordinates come first since they point
    at the exact comment; duplicates are dropped keeping first position.
    """
    doc = parse_document(html)
    if doc is None:
        return []
    priority: list[str] = []
    links: list[str] = []
    for href in doc.xpath("//a/@href"):
        if href.startswith("http"):
            links.append(href)
    for src in doc.xpath("//img/@src"):
        if src.startswith("http") and "figma.com" in src:
            if "commentx=" in src and "commenty=" in src:
                priority.append(src)
            else:
                links.append(src)
    return list(dict.fromkeys(priority + links))
