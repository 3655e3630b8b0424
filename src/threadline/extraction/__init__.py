"""Email content extraction: file keys, comment text, and fuzzy correlation.

Public API:
    parse_email(payload) -> ParsedEmail
        Classifies a Mailgun payload and runs the file-key and comment-text
        cascades over it.
    fuzzy_find_text(needle, haystack, threshold) -> str | None
        Best candidate at or above the similarity threshold.
"""

from threadline.extraction.classifier import EmailClassification, EmailType, classify_email
from threadline.extraction.email import ParsedEmail, parse_email
from threadline.extraction.fuzzy import fuzzy_find_text, levenshtein, normalize, similarity
from threadline.extraction.html import EmailSource
from threadline.extraction.identifiers import extract_file_key, key_from_url
from threadline.extraction.text import extract_comment_text

__all__ = [
    "EmailClassification",
    "EmailSource",
    "EmailType",
    "ParsedEmail",
    "classify_email",
    "extract_comment_text",
    "extract_file_key",
    "fuzzy_find_text",
    "key_from_url",
    "levenshtein",
    "normalize",
    "parse_email",
    "similarity",
]
