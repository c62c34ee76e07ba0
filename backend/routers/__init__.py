"""
API routers package.
Each router handles a specific domain of endpoints.
"""

from routers import folders, notes, tags, images

__all__ = [
    "folders",
    "notes",
    "tags",
    "images",
]
