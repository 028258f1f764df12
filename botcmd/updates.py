from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass(frozen=True)
class BuildInfo:
    ts: int
    sha: str

    def to_dict(self) -> dict[str, Any]:
        return {"ts": self.ts, "sha": self.sha}


@dataclass(frozen=True)
class UpdateStatus:
    current: BuildInfo
    online: BuildInfo

    @property
    def has_update(self) -> bool:
        return self.current.ts < self.online.ts


class UpdateChecker:
    """Compares the running build with the build manifest published on GitHub."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        current: BuildInfo,
        repository: str,
        branch: str,
    ) -> None:
        self._client = client
        self._current = current
        self._base = f"https://raw.githubusercontent.com/{repository}/{branch}/dist"
        self._headers = {"User-Agent": repository}
        self._logger = logging.getLogger("updates")

    async def check(self) -> UpdateStatus:
        return UpdateStatus(current=self._current, online=await self._fetch_online())

    async def _fetch_online(self) -> BuildInfo:
        try:
            response = await self._client.get(f"{self._base}/buildinfo.json", headers=self._headers)
            response.raise_for_status()
            data = response.json()
            return BuildInfo(ts=int(data.get("ts", 0)), sha=str(data.get("sha", "unknown")))
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            self._logger.info("buildinfo.json unavailable: %s", exc)
        try:
            response = await self._client.get(f"{self._base}/timestamp", headers=self._headers)
            response.raise_for_status()
            return BuildInfo(ts=int(response.text.strip()), sha="unknown")
        except (httpx.HTTPError, ValueError) as exc:
            self._logger.info("timestamp unavailable: %s", exc)
        return BuildInfo(ts=0, sha="unknown")
