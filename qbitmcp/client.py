"""
Async client for the qBittorrent Web UI API (v2).

One QBitClient per configured instance. The underlying httpx.AsyncClient
keeps the SID cookie returned by login, so a single client is shared by all
concurrent tool calls.
"""

import json
from typing import Any, Optional

import httpx

from .mcp.logger import get_logger
from .mcp.utils.config import BACKEND_TIMEOUT

logger = get_logger("qbitmcp-client")

USER_AGENT = "qbittorrent-mcp"


class BackendError(RuntimeError):
    """Raised when the qBittorrent Web UI rejects or fails a request."""

    def __init__(self, action: str, status_code: Optional[int] = None, detail: str = ""):
        self.action = action
        self.status_code = status_code
        reason = detail or (str(status_code) if status_code is not None else "unknown error")
        super().__init__(f"Failed to {action}: {reason}")


class BackendConnectionError(BackendError):
    """Raised when qBittorrent cannot be reached at all."""


def _flag(value: bool) -> str:
    return "true" if value else "false"


class QBitClient:
    """
    Thin async wrapper around the qBittorrent Web UI endpoints used by the tools.

    Usage:
        client = QBitClient("http://localhost:8080", "admin", "secret")
        await client.login()
        torrents = await client.get_torrent_list(filter="downloading")
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: float = BACKEND_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            verify=verify_ssl,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "QBitClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        action: str,
        *,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
        files: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(
                method,
                f"/api/v2/{path}",
                params=params,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise BackendConnectionError(
                action, detail=f"cannot reach {self.base_url} ({exc})"
            ) from exc

    async def _call(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        response = await self._send(method, path, action, **kwargs)
        if not response.is_success:
            raise BackendError(action, response.status_code)
        return response

    async def _call_with_fallback(
        self, method: str, path: str, legacy_path: str, action: str, **kwargs
    ) -> httpx.Response:
        """Try the qBittorrent 5.x endpoint, then the 4.x name if it is missing."""
        response = await self._send(method, path, action, **kwargs)
        if response.status_code == 404:
            logger.debug("%s not available, falling back to %s", path, legacy_path)
            response = await self._send(method, legacy_path, action, **kwargs)
        if not response.is_success:
            raise BackendError(action, response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(action, response.status_code, "invalid JSON in response") from exc

    async def _get_json(self, path: str, action: str, params: Optional[dict] = None) -> Any:
        response = await self._call("GET", path, action, params=params)
        return self._json(response, action)

    async def _post(self, path: str, action: str, data: Optional[dict] = None) -> None:
        await self._call("POST", path, action, data=data)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Authenticate and store the SID cookie (Web UI requires Referer/Origin)."""
        response = await self._call(
            "POST",
            "auth/login",
            "log in",
            data={"username": self.username or "", "password": self.password or ""},
            headers={"Referer": f"{self.base_url}/", "Origin": self.base_url},
        )
        if response.text.strip() == "Fails.":
            raise BackendError("log in", response.status_code, "invalid username or password")

    # ------------------------------------------------------------------
    # Torrents
    # ------------------------------------------------------------------

    async def get_torrent_list(
        self,
        filter: Optional[str] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        sort: Optional[str] = None,
        reverse: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[dict]:
        params = {
            "filter": filter,
            "category": category,
            "tag": tag,
            "sort": sort,
            "reverse": _flag(reverse) if reverse is not None else None,
            "limit": limit,
            "offset": offset,
        }
        params = {key: value for key, value in params.items() if value is not None}
        return await self._get_json("torrents/info", "get torrent list", params)

    async def get_torrents_info(self, hashes: str) -> list[dict]:
        return await self._get_json("torrents/info", "get torrents info", {"hashes": hashes})

    async def add_torrent(
        self, urls: str, save_path: Optional[str] = None, category: Optional[str] = None
    ) -> None:
        # qBittorrent only accepts multipart/form-data here
        fields = {"urls": (None, urls)}
        if save_path:
            fields["savepath"] = (None, save_path)
        if category:
            fields["category"] = (None, category)
        await self._call("POST", "torrents/add", "add torrent", files=fields)

    async def pause_torrents(self, hashes: str) -> None:
        await self._call_with_fallback(
            "POST", "torrents/stop", "torrents/pause", "pause torrents", data={"hashes": hashes}
        )

    async def resume_torrents(self, hashes: str) -> None:
        await self._call_with_fallback(
            "POST", "torrents/start", "torrents/resume", "resume torrents", data={"hashes": hashes}
        )

    async def delete_torrents(self, hashes: str, delete_files: bool) -> None:
        await self._post(
            "torrents/delete",
            "delete torrents",
            {"hashes": hashes, "deleteFiles": _flag(delete_files)},
        )

    async def reannounce_torrents(self, hashes: str) -> None:
        await self._post("torrents/reannounce", "reannounce torrents", {"hashes": hashes})

    async def recheck_torrents(self, hashes: str) -> None:
        await self._post("torrents/recheck", "recheck torrents", {"hashes": hashes})

    async def get_torrent_files(self, hash: str) -> list[dict]:
        return await self._get_json("torrents/files", "get torrent files", {"hash": hash})

    async def get_torrent_properties(self, hash: str) -> dict:
        return await self._get_json(
            "torrents/properties", "get torrent properties", {"hash": hash}
        )

    async def get_torrent_trackers(self, hash: str) -> list[dict]:
        return await self._get_json("torrents/trackers", "get torrent trackers", {"hash": hash})

    async def get_categories(self) -> dict:
        return await self._get_json("torrents/categories", "get categories")

    async def set_category(self, hashes: str, category: str) -> None:
        await self._post(
            "torrents/setCategory", "set category", {"hashes": hashes, "category": category}
        )

    async def add_tags(self, hashes: str, tags: str) -> None:
        await self._post("torrents/addTags", "add tags", {"hashes": hashes, "tags": tags})

    async def remove_tags(self, hashes: str, tags: str) -> None:
        await self._post("torrents/removeTags", "remove tags", {"hashes": hashes, "tags": tags})

    async def set_torrent_share_limits(
        self,
        hashes: str,
        ratio_limit: float,
        seeding_time_limit: int,
        inactive_seeding_time_limit: Optional[int] = None,
    ) -> None:
        # -2 means "use global limit"; newer releases reject the call without it
        inactive = -2 if inactive_seeding_time_limit is None else inactive_seeding_time_limit
        await self._post(
            "torrents/setShareLimits",
            "set share limits",
            {
                "hashes": hashes,
                "ratioLimit": str(ratio_limit),
                "seedingTimeLimit": str(seeding_time_limit),
                "inactiveSeedingTimeLimit": str(inactive),
            },
        )

    async def set_torrent_download_limit(self, hashes: str, limit: int) -> None:
        await self._post(
            "torrents/setDownloadLimit", "set download limit", {"hashes": hashes, "limit": str(limit)}
        )

    async def set_torrent_upload_limit(self, hashes: str, limit: int) -> None:
        await self._post(
            "torrents/setUploadLimit", "set upload limit", {"hashes": hashes, "limit": str(limit)}
        )

    async def toggle_sequential_download(self, hashes: str) -> None:
        await self._post(
            "torrents/toggleSequentialDownload", "toggle sequential download", {"hashes": hashes}
        )

    async def toggle_first_last_piece_priority(self, hashes: str) -> None:
        await self._post(
            "torrents/toggleFirstLastPiecePrio",
            "toggle first/last piece priority",
            {"hashes": hashes},
        )

    async def set_force_start(self, hashes: str, value: bool) -> None:
        await self._post(
            "torrents/setForceStart", "set force start", {"hashes": hashes, "value": _flag(value)}
        )

    async def set_super_seeding(self, hashes: str, value: bool) -> None:
        await self._post(
            "torrents/setSuperSeeding", "set super seeding", {"hashes": hashes, "value": _flag(value)}
        )

    async def add_trackers(self, hashes: str, urls: str) -> None:
        await self._post("torrents/addTrackers", "add trackers", {"hash": hashes, "urls": urls})

    async def edit_tracker(self, hash: str, orig_url: str, new_url: str) -> None:
        await self._post(
            "torrents/editTracker",
            "edit tracker",
            {"hash": hash, "origUrl": orig_url, "newUrl": new_url},
        )

    async def remove_trackers(self, hashes: str, urls: str) -> None:
        await self._post("torrents/removeTrackers", "remove trackers", {"hash": hashes, "urls": urls})

    async def rename_file(self, hash: str, old_path: str, new_path: str) -> None:
        await self._post(
            "torrents/renameFile",
            "rename file",
            {"hash": hash, "oldPath": old_path, "newPath": new_path},
        )

    async def rename_folder(self, hash: str, old_path: str, new_path: str) -> None:
        await self._post(
            "torrents/renameFolder",
            "rename folder",
            {"hash": hash, "oldPath": old_path, "newPath": new_path},
        )

    async def set_file_priority(self, hash: str, file_ids: str, priority: int) -> None:
        await self._post(
            "torrents/filePrio",
            "set file priority",
            {"hash": hash, "id": file_ids, "priority": str(priority)},
        )

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    async def get_global_transfer_info(self) -> dict:
        return await self._get_json("transfer/info", "get transfer info")

    async def ban_peers(self, peers: str) -> None:
        await self._post("transfer/banPeers", "ban peers", {"peers": peers})

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def start_search(self, pattern: str, category: Optional[str] = None) -> int:
        response = await self._call(
            "POST",
            "search/start",
            "start search",
            data={"pattern": pattern, "plugins": "all", "category": category or "all"},
        )
        job = self._json(response, "start search")
        return int(job["id"])

    async def get_search_results(
        self, search_id: int, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> dict:
        data = {"id": str(search_id)}
        if limit is not None:
            data["limit"] = str(limit)
        if offset is not None:
            data["offset"] = str(offset)
        response = await self._call("POST", "search/results", "get search results", data=data)
        return self._json(response, "get search results")

    async def stop_search(self, search_id: int) -> None:
        await self._post("search/stop", "stop search", {"id": str(search_id)})

    async def delete_search(self, search_id: int) -> None:
        await self._post("search/delete", "delete search", {"id": str(search_id)})

    async def get_search_plugins(self) -> list[dict]:
        return await self._get_json("search/plugins", "get search plugins")

    async def install_search_plugin(self, source: str) -> None:
        await self._post("search/installPlugin", "install search plugin", {"sources": source})

    async def uninstall_search_plugin(self, name: str) -> None:
        await self._post("search/uninstallPlugin", "uninstall search plugin", {"names": name})

    async def enable_search_plugin(self, name: str, enable: bool) -> None:
        await self._post(
            "search/enablePlugin", "enable search plugin", {"names": name, "enable": _flag(enable)}
        )

    async def update_search_plugins(self) -> None:
        await self._post("search/updatePlugins", "update search plugins")

    # ------------------------------------------------------------------
    # RSS
    # ------------------------------------------------------------------

    async def add_rss_feed(self, url: str, path: str) -> None:
        await self._post("rss/addFeed", "add RSS feed", {"url": url, "path": path})

    async def move_rss_item(self, item_path: str, dest_path: str) -> None:
        await self._post(
            "rss/moveItem", "move RSS item", {"itemPath": item_path, "destPath": dest_path}
        )

    async def get_all_rss_feeds(self) -> dict:
        response = await self._call_with_fallback(
            "GET", "rss/items", "rss/allFeeds", "get RSS feeds", params={"withData": "true"}
        )
        return self._json(response, "get RSS feeds")

    async def set_rss_rule(self, name: str, definition: str) -> None:
        await self._post("rss/setRule", "set RSS rule", {"ruleName": name, "ruleDef": definition})

    async def get_all_rss_rules(self) -> dict:
        response = await self._call_with_fallback("GET", "rss/rules", "rss/allRules", "get RSS rules")
        return self._json(response, "get RSS rules")

    # ------------------------------------------------------------------
    # Application and logs
    # ------------------------------------------------------------------

    async def get_app_preferences(self) -> dict:
        return await self._get_json("app/preferences", "get app preferences")

    async def set_app_preferences(self, preferences: dict) -> None:
        await self._post(
            "app/setPreferences", "set app preferences", {"json": json.dumps(preferences)}
        )

    async def get_app_version(self) -> str:
        response = await self._call("GET", "app/version", "get app version")
        return response.text.strip()

    async def get_build_info(self) -> dict:
        return await self._get_json("app/buildInfo", "get build info")

    async def shutdown_app(self) -> None:
        await self._post("app/shutdown", "shut down app")

    async def get_main_log(
        self,
        normal: bool = True,
        info: bool = True,
        warning: bool = True,
        critical: bool = True,
        last_id: Optional[int] = None,
    ) -> list[dict]:
        params = {
            "normal": _flag(normal),
            "info": _flag(info),
            "warning": _flag(warning),
            "critical": _flag(critical),
        }
        if last_id is not None:
            params["last_known_id"] = last_id
        return await self._get_json("log/main", "get main log", params)

    async def get_peer_log(self, last_id: Optional[int] = None) -> list[dict]:
        params = {"last_known_id": last_id} if last_id is not None else None
        return await self._get_json("log/peers", "get peer log", params)

    async def get_main_data(self, rid: int = 0) -> dict:
        return await self._get_json("sync/maindata", "get main data", {"rid": rid})
