"""
Find stored-image references inside note bodies.

The editor embeds uploaded images as ``<img src="/api/images?id=N">``;
older notes written in Markdown use ``![alt](/api/images?id=N)``.
Both forms are recognized. Only URLs whose path ends in ``/images`` and
carry an integer ``id`` query parameter count as references.
"""

import html
import re
from typing import Set
from urllib.parse import parse_qs, urlsplit

_IMG_TAG_SRC = re.compile(
    r"""<img\b[^>]*?\bsrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""",
    re.IGNORECASE,
)
_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)")


def image_id_from_url(url: str) -> int | None:
    """Return the stored image id a URL points at, or None."""
    parts = urlsplit(html.unescape(url.strip()))
    if not parts.path.rstrip("/").endswith("/images"):
        return None
    values = parse_qs(parts.query).get("id")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def extract_image_ids(content: str | None) -> Set[int]:
    """Collect every stored image id referenced by a note body."""
    if not content:
        return set()

    urls = []
    for match in _IMG_TAG_SRC.finditer(content):
        urls.append(next(g for g in match.groups() if g is not None))
    urls.extend(m.group(1) for m in _MARKDOWN_IMAGE.finditer(content))

    ids = set()
    for url in urls:
        image_id = image_id_from_url(url)
        if image_id is not None:
            ids.add(image_id)
    return ids
