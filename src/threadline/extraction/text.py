"""Comment text extraction from notification emails.

Figma's notification HTML changes often and carries a lot of chrome
(footer links, app nags, inline stylesheets). Strategies run from most to
least specific:

1. ``@<bot>`` mention with trailing context (longest candidate wins)
2. Innermost table cell containing a mention, boilerplate filtered
3. Any mention with 100 characters of context either side, skipping CSS at-rules
4. Known comment containers (class and style selectors)
5. First meaningful line of the body text
"""

import logging
import re
from functools import partial

from threadline.extraction.cascade import run_cascade
from threadline.extraction.html import (
    EmailSource,
    body_text,
    collapse,
    html_text,
    parse_document,
    strip_tags,
)

logger = logging.getLogger(__name__)

MAX_CELL_TEXT = 500
CONTEXT_CHARS = 100
MIN_LINE_LENGTH = 10

BOILERPLATE_PHRASES = (
    "unsubscribe",
    "privacy policy",
    "notification settings",
    "manage notifications",
    "manage your notifications",
    "email preferences",
    "view in browser",
    "get the figma app",
    "download the app",
    "mobile app",
    "app store",
    "google play",
    "you're receiving this",
    "you are receiving this",
    "all rights reserved",
    "figma, inc",
    "reply to this email",
)

CSS_AT_RULES = frozenset({"font-face", "media", "import", "keyframes", "charset", "supports"})

# A mention is "@name" at the start of text or after whitespace/punctuation,
# so email addresses (name@host) never qualify.
MENTION_PATTERN = re.compile(r"(?:^|(?<=[\s>(\[\"']))@([A-Za-z-][\w.-]*)", re.MULTILINE)
_URL_LINE = re.compile(r"^(?:https?://|www\.)", re.IGNORECASE)
_CSS_DECLARATION = re.compile(r"^[\w-]+\s*:\s*[^:]+;\s*$")

STRUCTURAL_SELECTORS = (
    "//*[contains(@class, 'comment-body')]",
    "//*[contains(@class, 'comment-text')]",
    "//*[contains(@class, 'comment')]",
    "//td[contains(@style, 'font-size')][not(.//td)]",
    "//p",
)


def is_boilerplate(text: str) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in BOILERPLATE_PHRASES)


def is_css_at_rule(name: str) -> bool:
    """True for ``font-face``, ``media``, ... including vendor-prefixed forms."""
    name = re.sub(r"^-\w+-", "", name.lower())
    return name in CSS_AT_RULES


_LEADING_AT_RULE = re.compile(r"^@([\w-]+)")


def looks_like_css(text: str) -> bool:
    """True for stylesheet fragments: a leading at-rule, a declaration, or any brace block."""
    if "{" in text or "}" in text or _CSS_DECLARATION.match(text):
        return True
    match = _LEADING_AT_RULE.match(text)
    return bool(match) and is_css_at_rule(match.group(1))


def genuine_mentions(text: str) -> list[re.Match]:
    return [m for m in MENTION_PATTERN.finditer(text) if not is_css_at_rule(m.group(1))]


def text_from_bot_mention(source: EmailSource, bot_name: str) -> str | None:
    if not bot_name:
        return None
    pattern = re.compile(rf"@{re.escape(bot_name)}\b[^\n<]*", re.IGNORECASE)
    haystacks = [source.text, html_text(source.html)]
    candidates = [collapse(m.group(0)) for text in haystacks for m in pattern.finditer(text)]
    candidates = [c for c in candidates if len(c) > len(bot_name) + 1]
    if not candidates:
        return None
    candidates.sort(key=len, reverse=True)
    return candidates[0]


def text_from_mention_cell(source: EmailSource) -> str | None:
    doc = parse_document(source.html)
    if doc is None:
        return None
    # innermost cells only: a cell with no nested cell that also mentions someone
    for cell in doc.xpath("//td[contains(., '@')][not(.//td[contains(., '@')])]"):
        text = collapse(cell.text_content())
        if not text or is_boilerplate(text) or looks_like_css(text) or not genuine_mentions(text):
            continue
        return text[:MAX_CELL_TEXT]
    return None


def text_from_mention_context(source: EmailSource) -> str | None:
    text = strip_tags(source.html) if source.html else collapse(source.text)
    for match in genuine_mentions(text):
        start = max(0, match.start() - CONTEXT_CHARS)
        end = min(len(text), match.end() + CONTEXT_CHARS)
        snippet = collapse(text[start:end])
        if snippet and not is_boilerplate(snippet) and not looks_like_css(snippet):
            return snippet
    return None


def text_from_structure(source: EmailSource) -> str | None:
    doc = parse_document(source.html)
    if doc is None:
        return None
    for selector in STRUCTURAL_SELECTORS:
        for element in doc.xpath(selector):
            text = collapse(element.text_content())
            if len(text) > 2 and not is_boilerplate(text) and not looks_like_css(text):
                return text
    return None


def _is_meaningful_line(line: str) -> bool:
    if len(line) <= MIN_LINE_LENGTH:
        return False
    if _URL_LINE.match(line) or line.startswith("@"):
        return False
    if looks_like_css(line):
        return False
    return not is_boilerplate(line)


def text_from_first_line(source: EmailSource) -> str | None:
    for line in body_text(source).splitlines():
        line = line.strip()
        if _is_meaningful_line(line):
            return line
    return None


async def extract_comment_text(source: EmailSource, bot_name: str = "") -> str | None:
    """Run the text cascade and return the comment text, or None."""
    steps = [
        partial(text_from_bot_mention, bot_name=bot_name),
        text_from_mention_cell,
        text_from_mention_context,
        text_from_structure,
        text_from_first_line,
    ]
    return await run_cascade("comment_text", steps, source)
