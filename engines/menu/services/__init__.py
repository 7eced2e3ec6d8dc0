"""
POS Menu Engine - Menu Views and Favorites
==========================================
Cached menu views for the order screen.

Favorite toggling is a low-stakes write: the cached views flip
immediately and are restored if the store rejects the write.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.caching import ViewCache, speculative_update
from core.commands.rejection import ReasonCode
from core.context.session import PosSession
from core.errors import RecordNotFound
from core.security.tenant_isolation import enforce_tenant_scope
from core.store.protocol import DataStore, Row
from core.store.tables import MENU_ITEMS
from core.time.clock import Clock

logger = logging.getLogger("pos.menu")


def menu_view_key(restaurant_id: str) -> str:
    return f"menu:{restaurant_id}"


def favorites_view_key(restaurant_id: str) -> str:
    return f"menu:{restaurant_id}:favorites"


class FavoriteService:
    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        cache: ViewCache,
        audit: AuditTrail,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._cache = cache
        self._audit = audit

    def list_menu(self) -> List[Row]:
        key = menu_view_key(self._session.restaurant_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        rows = self._store.select(
            MENU_ITEMS,
            {"restaurant_id": self._session.restaurant_id},
            order_by=["name"],
        )
        self._cache.put(key, rows)
        return rows

    def list_favorites(self) -> List[Row]:
        key = favorites_view_key(self._session.restaurant_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        rows = [r for r in self.list_menu() if r.get("is_favorite")]
        self._cache.put(key, rows)
        return rows

    def toggle_favorite(self, menu_item_id: str) -> Row:
        rows = self._store.select(MENU_ITEMS, {"id": menu_item_id})
        if not rows:
            raise RecordNotFound(
                f"Menu item '{menu_item_id}' not found.",
                code=ReasonCode.ITEM_NOT_FOUND,
            )
        item = rows[0]
        enforce_tenant_scope(self._session, item)
        favorite = not item.get("is_favorite")
        restaurant_id = item["restaurant_id"]

        def flip(view: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            return [
                dict(r, is_favorite=favorite) if r["id"] == menu_item_id else r
                for r in view
            ]

        def refile(view: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            kept = [r for r in view if r["id"] != menu_item_id]
            if favorite:
                kept.append(dict(item, is_favorite=True))
                kept.sort(key=lambda r: r.get("name") or "")
            return kept

        def write() -> Row:
            with self._store.transaction():
                updated = self._store.update(
                    MENU_ITEMS, {"id": menu_item_id}, {"is_favorite": favorite},
                )
            return updated[0]

        edits = {
            menu_view_key(restaurant_id): flip,
            favorites_view_key(restaurant_id): refile,
        }
        updated = speculative_update(self._cache, edits, edits, write)
        logger.debug(f"Menu item {menu_item_id} favorite set to {favorite}")
        self._audit.record(
            EntityType.MENU_ITEM, menu_item_id, AuditAction.MENU_FAVORITE_TOGGLED,
            {"name": item.get("name"), "is_favorite": favorite},
        )
        return updated


__all__ = ["FavoriteService", "favorites_view_key", "menu_view_key"]
