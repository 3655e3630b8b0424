"""Figma file key extraction, most reliable signal first.

1. ``comments-<KEY>@`` sender address
2. Tracking-link redirect target (HEAD, no redirect following, hard timeout)
3. Direct file/design/proto/board links
4. CDN and upload URLs
5. Any long hex token in the payload
"""

import asyncio
import logging
import re
from functools import partial
from urllib.parse import unquote, urlsplit

import httpx

from threadline.extraction.cascade import run_cascade
from threadline.extraction.html import EmailSource, extract_links

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_TIMEOUT = 3.0

SENDER_PATTERN = re.compile(r"comments-([a-zA-Z0-9]+)@", re.IGNORECASE)
FILE_URL_PATTERN = re.compile(r"figma\.com/(?:file|design|proto|board)/([a-zA-Z0-9]+)")
CDN_PATTERNS = [
    re.compile(r"api-cdn\.figma\.com/resize/images/(\d+)/"),
    re.compile(r"(?:s3[\w.-]*\.amazonaws\.com|figma-alpha[\w.-]*|figmausercontent\.com)/[^\s\"'<>]*?([0-9a-f]{32,})", re.IGNORECASE),
]
HEX_PATTERN = re.compile(r"\b([0-9a-f]{32,})\b", re.IGNORECASE)

# Click-tracking hosts used by Figma's mail provider
TRACKING_HOST_PATTERN = re.compile(
    r"^(?:email|click|links?|url\d*|track)\.|(?:sendgrid\.net|mailgun\.org|mandrillapp\.com|list-manage\.com)$",
    re.IGNORECASE,
)
_MAX_TRACKING_LINKS = 5


def key_from_url(url: str) -> str | None:
    """File key from a direct Figma link or CDN image URL."""
    match = FILE_URL_PATTERN.search(url)
    if match:
        return match.group(1)
    for pattern in CDN_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def key_from_sender(source: EmailSource) -> str | None:
    match = SENDER_PATTERN.search(source.sender or "")
    return match.group(1) if match else None


def is_tracking_link(url: str) -> bool:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return False
    return bool(TRACKING_HOST_PATTERN.search(host))


async def resolve_redirect(url: str, timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> str | None:
    """Return the URL-decoded ``Location`` of one redirect hop, or None.

    Never raises: timeouts and network errors are logged and reported as None.
    """
    try:
        async with asyncio.timeout(timeout):
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=httpx.Timeout(timeout),
                transport=transport,
            ) as client:
                response = await client.head(url)
    except TimeoutError:
        logger.warning("Redirect resolution timed out after %.1fs: %s", timeout, url)
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("Redirect resolution failed for %s: %s", url, exc)
        return None

    location = response.headers.get("location")
    return unquote(location) if location else None


async def key_from_tracking_links(
    source: EmailSource,
    timeout: float = DEFAULT_REDIRECT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    tracking = [link for link in extract_links(source.html) if is_tracking_link(link)]
    for link in tracking[:_MAX_TRACKING_LINKS]:
        destination = await resolve_redirect(link, timeout, transport)
        if destination:
            match = FILE_URL_PATTERN.search(destination)
            if match:
                return match.group(1)
    return None


def key_from_direct_links(source: EmailSource) -> str | None:
    candidates = extract_links(source.html) + re.findall(r"https?://[^\s<>\"']+", source.text)
    for link in candidates:
        match = FILE_URL_PATTERN.search(link)
        if match:
            return match.group(1)
    return None


def key_from_cdn_urls(source: EmailSource) -> str | None:
    for pattern in CDN_PATTERNS:
        match = pattern.search(source.raw)
        if match:
            return match.group(1)
    return None


def key_from_hex_token(source: EmailSource) -> str | None:
    match = HEX_PATTERN.search(source.raw)
    return match.group(1) if match else None


async def extract_file_key(
    source: EmailSource,
    *,
    redirect_timeout: float = DEFAULT_REDIRECT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    """Run the identifier cascade and return the first file key found."""
    steps = [
        key_from_sender,
        partial(key_from_tracking_links, timeout=redirect_timeout, transport=transport),
        key_from_direct_links,
        key_from_cdn_urls,
        key_from_hex_token,
    ]
    return await run_cascade("file_key", steps, source)
