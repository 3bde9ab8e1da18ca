"""Direct HTTP pass-through to the job portal's own APIs.

Thin relay used next to the browser login: each call attaches the fixed
header set the portal's web client sends, forwards the caller's payload,
and hands the upstream status and body back unchanged. Cookies are never
forwarded in either direction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

log = logging.getLogger(__name__)

LOGIN_PATH = "/central-login-services/v1/login"
PROFILE_PATH = "/cloudgateway-mynaukri/resman-aggregator-services/v2/users/self"
UPDATE_PROFILE_PATH = "/cloudgateway-mynaukri/resman-aggregator-services/v1/users/self/fullprofiles"

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36"
)
_SEC_CH_UA = '"Not)A;Brand";v="8", "Chromium";v="138", "Google Chrome";v="138"'

_COMMON = {
    "accept": "application/json",
    "cache-control": "no-cache",
    "clientid": "d3skt0p",
    "content-type": "application/json",
    "pragma": "no-cache",
    "priority": "u=1, i",
    "sec-ch-ua": _SEC_CH_UA,
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "user-agent": _USER_AGENT,
}


def is_bearer(authorization: str | None) -> bool:
    return bool(authorization) and authorization.lower().startswith("bearer ")


# -- Header sets -------------------------------------------------------------


def login_headers(origin: str) -> dict[str, str]:
    return {
        **_COMMON,
        "accept-language": "en-GB,en;q=0.9",
        "appid": "103",
        "origin": origin,
        "referer": f"{origin}/",
        "systemid": "jobseeker",
    }


def fetch_profile_headers(origin: str, authorization: str) -> dict[str, str]:
    return {
        **_COMMON,
        "accept-language": "en-GB,en-US;q=0.9,en;q=0.8,hi;q=0.7,la;q=0.6",
        "appid": "105",
        "authorization": authorization,
        "referer": f"{origin}/mnjuser/profile",
        "systemid": "Naukri",
        "x-requested-with": "XMLHttpRequest",
    }


def update_profile_headers(origin: str, authorization: str) -> dict[str, str]:
    # Upstream rejects a real PUT; it wants POST plus the override header.
    return {
        **_COMMON,
        "accept-language": "en-GB,en-US;q=0.9,en;q=0.8,hi;q=0.7,la;q=0.6",
        "appid": "105",
        "authorization": authorization,
        "origin": origin,
        "referer": f"{origin}/mnjuser/profile?action=modalOpen",
        "systemid": "Naukri",
        "x-http-method-override": "PUT",
        "x-requested-with": "XMLHttpRequest",
    }


# -- Client ------------------------------------------------------------------


@dataclass(frozen=True)
class UpstreamResponse:
    """Upstream status and raw body, relayed as-is."""

    status: int
    body: bytes
    content_type: str = "application/json"


class UpstreamClient:
    """Persistent httpx client for the portal's login and profile APIs.

    Transport failures surface as httpx.HTTPError; the caller maps them
    to a 502. Any HTTP status from upstream, including errors, is data.
    """

    def __init__(self, base_url: str, timeout: float = 20.0) -> None:
        self._base_url: str = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Create the persistent httpx.AsyncClient."""
        self._client = httpx.AsyncClient(timeout=self._timeout)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def login(self, username: str, password: str) -> UpstreamResponse:
        log.info("Relaying direct login request")
        resp = await self._http().post(
            self._base_url + LOGIN_PATH,
            json={"username": username, "password": password},
            headers=login_headers(self._base_url),
        )
        return self._relay(resp)

    async def fetch_profile(self, authorization: str) -> UpstreamResponse:
        resp = await self._http().get(
            self._base_url + PROFILE_PATH,
            params={"expand_level": "2"},
            headers=fetch_profile_headers(self._base_url, authorization),
        )
        return self._relay(resp)

    async def update_profile(
        self, authorization: str, profile: dict, profile_id: str
    ) -> UpstreamResponse:
        resp = await self._http().post(
            self._base_url + UPDATE_PROFILE_PATH,
            json={"profile": profile, "profileId": profile_id},
            headers=update_profile_headers(self._base_url, authorization),
        )
        return self._relay(resp)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("UpstreamClient not started")
        return self._client

    @staticmethod
    def _relay(resp: httpx.Response) -> UpstreamResponse:
        log.info("Upstream %s %s -> %d", resp.request.method, resp.request.url.path, resp.status_code)
        content_type = resp.headers.get("content-type", "application/json").split(";")[0].strip()
        return UpstreamResponse(
            status=resp.status_code,
            body=resp.content,
            content_type=content_type or "application/json",
        )
