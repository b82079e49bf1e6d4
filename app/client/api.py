"""Thin async wrappers around the REST endpoints used next to the chat stream."""

import logging
from typing import Any

import httpx

from app.client.cache import ProcessCache, process_cache

logger = logging.getLogger(__name__)

FAVORITES_TTL = 5 * 60


class ChatApiClient:
    """REST calls for threads, favorites, preferences, attachments and shares.

    Favorite models are cached per ``cache_scope`` for five minutes and
    invalidated whenever this client changes them.
    """

    def __init__(self, http: httpx.AsyncClient, cache: ProcessCache = process_cache, cache_scope: str = "default"):
        self.http = http
        self.cache = cache
        self.favorites_key = f"favorite-models:{cache_scope}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self.http.request(method, url, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Threads

    async def list_threads(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/threads")
        return data["threads"]

    async def get_thread(self, thread_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/thread/{thread_id}")

    async def update_thread(self, thread_id: str, **fields) -> dict[str, Any]:
        return await self._request("PATCH", f"/api/thread/{thread_id}", json=fields)

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/api/thread/{thread_id}")

    async def split_thread(self, thread_id: str, message_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/api/thread/{thread_id}/split", json={"messageId": message_id})

    # Favorites

    async def list_favorites(self) -> list[str]:
        async def load() -> list[str]:
            data = await self._request("GET", "/api/favorite-models")
            return data["favoriteModels"]

        return await self.cache.get_or_load(self.favorites_key, load, ttl=FAVORITES_TTL)

    async def add_favorite(self, model_id: str) -> list[str]:
        try:
            data = await self._request("POST", "/api/favorite-models", json={"modelId": model_id})
        finally:
            self.cache.invalidate(self.favorites_key)
        return data["favoriteModels"]

    async def remove_favorite(self, model_id: str) -> list[str]:
        try:
            data = await self._request("DELETE", "/api/favorite-models", json={"modelId": model_id})
        finally:
            self.cache.invalidate(self.favorites_key)
        return data["favoriteModels"]

    # Preferences

    async def get_preferences(self) -> dict[str, Any]:
        return await self._request("GET", "/api/user-preferences")

    async def update_preferences(self, **fields) -> dict[str, Any]:
        return await self._request("PATCH", "/api/user-preferences", json=fields)

    async def set_last_selected_model(self, model_id: str) -> dict[str, Any]:
        return await self._request("POST", "/api/user-preferences/last-selected-model", json={"modelId": model_id})

    # Attachments

    async def upload_attachment(self, file_name: str, data: bytes, content_type: str) -> dict[str, Any]:
        logger.info(f"Uploading attachment {file_name} ({len(data)} bytes)")
        return await self._request("POST", "/api/attachments", files={"file": (file_name, data, content_type)})

    async def delete_attachment(self, attachment_id: str) -> None:
        await self._request("DELETE", f"/api/attachments/{attachment_id}")

    async def attachment_details(self, attachment_ids: list[str]) -> list[dict[str, Any]]:
        data = await self._request("POST", "/api/attachments/details", json={"attachmentIds": attachment_ids})
        return data["attachments"]

    # Sharing

    async def share_thread(self, thread_id: str, name: str | None = None) -> dict[str, Any]:
        body = {"name": name} if name is not None else None
        return await self._request("POST", f"/api/thread/{thread_id}/share", json=body)

    async def get_share_info(self, thread_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/thread/{thread_id}/share")

    async def unshare_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/api/thread/{thread_id}/share")
