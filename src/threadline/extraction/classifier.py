"""Classify inbound Figma emails so only comment notifications reach the pipeline.

Categories are checked in priority order: account verification and password
reset emails must never be mistaken for comments even when they mention one.
"""

import re
from dataclasses import dataclass
from enum import Enum

from threadline.extraction.html import EmailSource, strip_tags


class EmailType(str, Enum):
    ACCOUNT_VERIFICATION = "account-verification"
    PASSWORD_RESET = "password-reset"
    COMMENT = "comment"
    INVITATION = "invitation"
    NOTIFICATION = "notification"
    OTHER = "other"


@dataclass(frozen=True)
class EmailClassification:
    email_type: EmailType
    confidence: float
    reason: str

    @property
    def should_process(self) -> bool:
        return self.email_type == EmailType.COMMENT


_VERIFICATION = re.compile(
    r"verify your (?:email|figma account|account)|verify account|confirm your email|activate your account"
)
_PASSWORD = re.compile(r"reset your password|forgot your password|password recovery|change your password")
_COMMENT = re.compile(r"commented on|left a comment|mentioned you|replied to|new comment")
_INVITATION = re.compile(r"invited you|shared a file|join the team|you're invited|you have been invited|invitation")
_NOTIFICATION = re.compile(r"notification|update|announcement")


def _is_figma_sender(sender: str) -> bool:
    return bool(re.search(r"@(?:[\w-]+\.)*figma\.com\b", sender.lower()))


def classify_email(source: EmailSource) -> EmailClassification:
    """Categorize an email by subject, body, and sender."""
    subject = source.subject.lower()
    content = f"{strip_tags(source.html)} {source.text}".lower()
    from_figma = _is_figma_sender(source.sender)

    if _VERIFICATION.search(subject) or _VERIFICATION.search(content):
        return EmailClassification(EmailType.ACCOUNT_VERIFICATION, 0.95, "Matched account verification pattern")
    if _PASSWORD.search(subject) or _PASSWORD.search(content):
        return EmailClassification(EmailType.PASSWORD_RESET, 0.95, "Matched password reset pattern")
    if from_figma and _COMMENT.search(subject):
        return EmailClassification(EmailType.COMMENT, 0.9, "Comment notification subject from Figma")
    if from_figma and (_INVITATION.search(subject) or _INVITATION.search(content)):
        return EmailClassification(EmailType.INVITATION, 0.85, "Matched invitation pattern")
    if from_figma and _NOTIFICATION.search(subject):
        return EmailClassification(EmailType.NOTIFICATION, 0.7, "Generic Figma notification")
    return EmailClassification(EmailType.OTHER, 0.5, "No known pattern matched")
