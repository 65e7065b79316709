"""TikTok photo carousels.

yt-dlp only handles playable video, so photo posts are scraped directly:
the post page embeds its client state as JSON in one of a few places, and
the image URLs are read from it. The page layout is undocumented and
changes without notice, so everything here is best-effort.
"""

import json, logging, re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from .errors import ErrorKind, PhotoPostError
from .utils import is_tiktok

MAX_IMAGES = 10  # Telegram media group limit
DEFAULT_TITLE = "TikTok photos"
SHORT_LINK_HOSTS = {"vt.tiktok.com", "vm.tiktok.com"}
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Referer": "https://www.tiktok.com/",
    "Accept-Language": "en-US,en;q=0.9",
}

SIGI_ASSIGN_RE = re.compile(r"window(?:\[['\"]SIGI_STATE['\"]\]|\.SIGI_STATE)\s*=\s*")


@dataclass
class PhotoPost:
    title: str
    image_urls: List[str]


def is_photo_post(url: str) -> bool:
    return is_tiktok(url) and "/photo/" in urlparse(url).path


def is_short_link(url: str) -> bool:
    return urlparse(url).netloc.lower() in SHORT_LINK_HOSTS


def _script_json(soup: BeautifulSoup, tag_id: str) -> Optional[Any]:
    tag = soup.find("script", id=tag_id)
    if tag is None:
        return None
    try:
        return json.loads(tag.string or tag.get_text())
    except json.JSONDecodeError:
        logging.warning("Script #%s is not valid JSON", tag_id)
        return None


def _sigi_assignment(soup: BeautifulSoup) -> Optional[Any]:
    for script in soup.find_all("script"):
        text = script.string or ""
        m = SIGI_ASSIGN_RE.search(text)
        if not m:
            continue
        try:
            state, _ = json.JSONDecoder().raw_decode(text, m.end())
            return state
        except json.JSONDecodeError:
            logging.warning("SIGI_STATE assignment is not valid JSON")
    return None


def extract_state(html: str) -> Any:
    """Return the page's embedded client state, trying each known location."""
    soup = BeautifulSoup(html, "html.parser")
    loaders = (
        lambda: _script_json(soup, "__UNIVERSAL_DATA_FOR_REHYDRATION__"),
        lambda: _script_json(soup, "SIGI_STATE") or _sigi_assignment(soup),
        lambda: _script_json(soup, "__NEXT_DATA__"),
    )
    for load in loaders:
        state = load()
        if state is not None:
            return state
    raise PhotoPostError(ErrorKind.PARSE_FAILED, "no embedded state found")


def _dig(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def find_item(state: Any) -> Optional[dict]:
    item = _dig(state, "__DEFAULT_SCOPE__", "webapp.video-detail", "itemInfo", "itemStruct")
    if isinstance(item, dict):
        return item
    modules = _dig(state, "ItemModule")
    if isinstance(modules, dict) and modules:
        first = next(iter(modules.values()))
        if isinstance(first, dict):
            return first
    item = _dig(state, "props", "pageProps", "itemInfo", "itemStruct")
    return item if isinstance(item, dict) else None


def _image_url(image: Any) -> Optional[str]:
    for key in ("imageURL", "displayImage", "thumbnail"):
        urls = _dig(image, key, "urlList")
        if isinstance(urls, list):
            first = next((u for u in urls if isinstance(u, str) and u.startswith("http")), None)
            if first:
                return first
    return None


def images_from_item(item: dict) -> List[str]:
    images = _dig(item, "imagePost", "images")
    if not isinstance(images, list):
        return []
    return [u for u in (_image_url(img) for img in images) if u]


def scan_image_lists(node: Any) -> Iterator[List[str]]:
    """Walk any JSON value and yield every list that looks like a photo list.

    A photo list is a list of objects carrying ``imageURL.urlList`` (or a
    sibling key with the same shape). This is a heuristic over a third-party
    data shape: it can pick up unrelated image lists or miss renamed fields.
    """
    if isinstance(node, dict):
        for value in node.values():
            yield from scan_image_lists(value)
    elif isinstance(node, list):
        urls = [_image_url(el) for el in node if isinstance(el, dict)]
        if node and all(urls) and len(urls) == len(node):
            yield urls
        else:
            for value in node:
                yield from scan_image_lists(value)


def _dedupe(urls: List[str]) -> List[str]:
    seen, out = set(), []
    for u in urls:
        if u not in seen:
            seen.add(u)
            out.append(u)
    return out


def parse_photo_post(state: Any) -> PhotoPost:
    item = find_item(state)
    urls = images_from_item(item) if item else []
    if not urls:
        logging.info("Targeted image lookup failed, scanning the whole state")
        urls = [u for found in scan_image_lists(state) for u in found]
    urls = _dedupe(urls)
    if not urls:
        raise PhotoPostError(ErrorKind.IMAGES_NOT_FOUND, "no image lists in state")

    title = (item or {}).get("desc") or DEFAULT_TITLE
    return PhotoPost(title=title.strip() or DEFAULT_TITLE, image_urls=urls[:MAX_IMAGES])


class PhotoPostFetcher:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(headers=BROWSER_HEADERS, follow_redirects=True, timeout=timeout)

    async def resolve_url(self, url: str) -> str:
        """Expand vt./vm. short links to the canonical post URL."""
        if not is_short_link(url):
            return url
        resp = await self.client.get(url, headers=BROWSER_HEADERS)
        final = str(resp.url)
        logging.info("Expanded %s -> %s", url, final)
        return final

    async def fetch_photo_post(self, url: str) -> PhotoPost:
        resp = await self.client.get(url, headers=BROWSER_HEADERS)
        resp.raise_for_status()
        post = parse_photo_post(extract_state(resp.text))
        logging.info("Photo post %s: %d image(s)", url, len(post.image_urls))
        return post

    async def download_images(self, urls: List[str]) -> List[bytes]:
        """Fetch image bytes; the CDN rejects requests without a TikTok referer."""
        images = []
        for url in urls[:MAX_IMAGES]:
            try:
                resp = await self.client.get(url, headers=BROWSER_HEADERS)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logging.warning("Could not fetch image %s: %s", url, e)
                continue
            images.append(resp.content)
        return images

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
