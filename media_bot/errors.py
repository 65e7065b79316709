"""Error kinds surfaced to users and the classifier for yt-dlp diagnostics."""

import enum
from typing import List, Tuple


class ErrorKind(enum.Enum):
    AUTH_REQUIRED = "auth_required"
    PRIVATE_OR_MEMBERS_ONLY = "private_or_members_only"
    UNAVAILABLE = "unavailable"
    FORMAT_UNAVAILABLE = "format_unavailable"
    MAX_FILESIZE = "max_filesize"
    FILENAME_TOO_LONG = "filename_too_long"
    PARSE_FAILED = "parse_failed"
    IMAGES_NOT_FOUND = "images_not_found"
    API_KEY_MISSING = "api_key_missing"
    LINK_EXPIRED = "link_expired"
    UNKNOWN = "unknown"


class MediaBotError(Exception):
    def __init__(self, kind: ErrorKind, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail


class ExtractionError(MediaBotError):
    pass


class PhotoPostError(MediaBotError):
    pass


class CatalogError(MediaBotError):
    pass


# Checked in order; the first matching pattern wins.
DIAGNOSTIC_PATTERNS: List[Tuple[ErrorKind, Tuple[str, ...]]] = [
    (ErrorKind.MAX_FILESIZE, (
        "larger than max-filesize",
        "max-filesize",
    )),
    (ErrorKind.FILENAME_TOO_LONG, (
        "file name too long",
        "filename too long",
        "errno 36",
    )),
    (ErrorKind.FORMAT_UNAVAILABLE, (
        "requested format is not available",
        "requested format not available",
        "no video formats found",
    )),
    (ErrorKind.PRIVATE_OR_MEMBERS_ONLY, (
        "private video",
        "video is private",
        "members-only",
        "members only",
        "join this channel",
    )),
    (ErrorKind.AUTH_REQUIRED, (
        "sign in to confirm",
        "confirm you're not a bot",
        "confirm you are not a bot",
        "login required",
        "age-restricted",
        "use --cookies",
        "--cookies-from-browser",
    )),
    (ErrorKind.UNAVAILABLE, (
        "video unavailable",
        "is not available",
        "has been removed",
        "no longer available",
        "http error 404",
        "unsupported url",
        "does not exist",
    )),
]


def classify_diagnostic(text: str) -> ErrorKind:
    """Map yt-dlp's free-form diagnostic output to an ErrorKind.

    This is a best-effort substring heuristic, not a parser. Anything that
    does not match a known pattern is reported as UNKNOWN.
    """
    haystack = (text or "").lower()
    for kind, patterns in DIAGNOSTIC_PATTERNS:
        if any(p in haystack for p in patterns):
            return kind
    return ErrorKind.UNKNOWN
