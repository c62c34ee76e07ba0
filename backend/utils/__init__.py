"""
Utility modules package.
"""

from utils.validators import require_text, validate_color, parse_tags, join_tags
from utils.image_refs import extract_image_ids, image_id_from_url

__all__ = [
    "require_text",
    "validate_color",
    "parse_tags",
    "join_tags",
    "extract_image_ids",
    "image_id_from_url",
]
