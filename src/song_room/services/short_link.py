"""Expansion of Bilibili short links (b23.tv) into canonical video urls."""

import logging
import re
from typing import Iterable, Optional

import httpx

from song_room.core.protocol.messages import SongPayload


logger = logging.getLogger(__name__)

BVID_PATTERN = re.compile(r"BV[a-zA-Z0-9]{10}")
_URL_IN_TEXT = re.compile(r"https?://\S+")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)


def extract_bvid(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = BVID_PATTERN.search(url)
    return match.group(0) if match else None


def canonical_video_url(bvid: str) -> str:
    return f"bilibili://video/{bvid}"


class ShortLinkResolver:
    """Follows a single short-link redirect by hand and reads the target from `Location`.

    Redirects are never followed automatically: the redirect target is all
    that is needed, and the landing page can be large or require login.
    """

    def __init__(
        self,
        domains: Iterable[str] = ("b23.tv",),
        timeout: float = 5.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._domains = tuple(domains)
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
                headers={"User-Agent": self._user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def is_short_link(self, url: Optional[str]) -> bool:
        return bool(url) and any(d in url for d in self._domains)

    async def resolve(self, url: str) -> Optional[str]:
        """Return the BV id behind `url`, or None if it cannot be determined."""
        if not self.is_short_link(url):
            return extract_bvid(url)

        found = _URL_IN_TEXT.search(url)
        target = found.group(0) if found else f"https://{url.lstrip('/')}"
        try:
            response = await self.client.get(target)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("short link resolution failed for %s: %s", target, e)
            return None

        if response.status_code >= 400:
            logger.warning("short link %s answered %d", target, response.status_code)
            return None
        return extract_bvid(response.headers.get("location"))

    async def expand(self, song: SongPayload) -> SongPayload:
        if not self.is_short_link(song.url):
            return song
        bvid = await self.resolve(song.url or "")
        if bvid is None:
            return song
        return song.model_copy(update={"url": canonical_video_url(bvid), "id": song.id or bvid})
