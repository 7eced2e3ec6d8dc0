"""
POS Menu Engine
===============
Cached menu views and favorites.
"""

from engines.menu.services import FavoriteService, favorites_view_key, menu_view_key

__all__ = ["FavoriteService", "favorites_view_key", "menu_view_key"]
