"""
Bookmarks component - Netscape bookmark file import and export.
"""

from .component import (
    LOOSE_LINKS_CONTAINER,
    generate_netscape_bookmarks,
    group_by_top_folder,
    import_bookmarks,
    parse_netscape_bookmarks,
)
from .models import ImportedBookmark, ImportResult

__all__ = [
    "parse_netscape_bookmarks",
    "generate_netscape_bookmarks",
    "group_by_top_folder",
    "import_bookmarks",
    "LOOSE_LINKS_CONTAINER",
    "ImportedBookmark",
    "ImportResult",
]
