"""
Deterministic parsing of raw catalog names into author and title.

Bucket keys look like "A.J.Cronin - Le jardinier espagnol --- (Ny Aiko Boky).pdf";
archive.org titles use the same convention without the extension. The part
after "---" is a signature and is dropped.
"""
import base64
import re

from noovy.internal.models import UNKNOWN_AUTHOR

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)
_SIGNED_NAME = re.compile(r"^(.+?)\s+-\s+(.+?)\s+---\s*\(.+\)$")
_SIMPLE_NAME = re.compile(r"^(.+?)\s+-\s+(.+)$")
_ARCHIVE_TITLE = re.compile(r"^(.+?)\s*-\s*(.+?)\s*---")


def strip_pdf_suffix(key: str) -> str:
    return _PDF_SUFFIX.sub("", key)


def parse_filename(filename: str) -> tuple[str, str]:
    """Return (author, title) for a bucket key."""
    name = strip_pdf_suffix(filename)

    match = _SIGNED_NAME.match(name) or _SIMPLE_NAME.match(name)
    if match:
        return match.group(1).strip(), match.group(2).strip()

    return UNKNOWN_AUTHOR, name.strip()


def parse_archive_title(raw_title: str) -> tuple[str, str]:
    """Return (author, title) for an archive.org item title."""
    match = _ARCHIVE_TITLE.match(raw_title)
    if not match:
        return UNKNOWN_AUTHOR, raw_title.strip()
    return match.group(1).strip(), match.group(2).strip()


def book_id_from_key(key: str) -> str:
    """URL-safe id derived from a bucket key (unpadded base64url)."""
    encoded = base64.urlsafe_b64encode(strip_pdf_suffix(key).encode("utf-8"))
    return encoded.decode("ascii").rstrip("=")


def legacy_id_from_key(key: str) -> str:
    return re.sub(r"\s+", "_", strip_pdf_suffix(key))
