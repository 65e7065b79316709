import json

import httpx
import pytest

from media_bot.errors import ErrorKind, PhotoPostError
from media_bot.photo_post import (
    MAX_IMAGES, PhotoPostFetcher, extract_state, is_photo_post, parse_photo_post, scan_image_lists,
)

POST_URL = "https://www.tiktok.com/@someone/photo/7300000000000000000"


def images(n, prefix="https://p16-sign.tiktokcdn.com/img"):
    return [{"imageURL": {"urlList": [f"{prefix}{i}.jpeg", f"{prefix}{i}-alt.jpeg"]}} for i in range(n)]


def item(n=3, desc="Holiday pics"):
    return {"id": "7300000000000000000", "desc": desc, "imagePost": {"images": images(n)}}


def rehydration_html(state):
    return (
        "<html><head></head><body>"
        f'<script id="__UNIVERSAL_DATA_FOR_REHYDRATION__" type="application/json">{json.dumps(state)}</script>'
        "</body></html>"
    )


def rehydration_state(n=3):
    return {"__DEFAULT_SCOPE__": {"webapp.video-detail": {"itemInfo": {"itemStruct": item(n)}}}}


class TestExtractState:
    def test_rehydration_script(self):
        state = extract_state(rehydration_html(rehydration_state()))
        assert "__DEFAULT_SCOPE__" in state

    @pytest.mark.parametrize("target", ["window['SIGI_STATE']", 'window["SIGI_STATE"]', "window.SIGI_STATE"])
    def test_sigi_assignment(self, target):
        state = {"ItemModule": {"7300000000000000000": item()}}
        html = f"<script>{target} = {json.dumps(state)};window['SIGI_RETRY']={{}}</script>"
        assert extract_state(html) == state

    def test_next_data_script(self):
        state = {"props": {"pageProps": {"itemInfo": {"itemStruct": item()}}}}
        html = f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(state)}</script>'
        assert extract_state(html) == state

    def test_falls_back_past_broken_json(self):
        state = {"props": {"pageProps": {"itemInfo": {"itemStruct": item()}}}}
        html = (
            '<script id="__UNIVERSAL_DATA_FOR_REHYDRATION__">{broken</script>'
            f'<script id="__NEXT_DATA__">{json.dumps(state)}</script>'
        )
        assert extract_state(html) == state

    def test_nothing_parses(self):
        with pytest.raises(PhotoPostError) as exc:
            extract_state("<html><script>var x = 1;</script></html>")
        assert exc.value.kind is ErrorKind.PARSE_FAILED


class TestParsePhotoPost:
    @pytest.mark.parametrize("state", [
        rehydration_state(),
        {"ItemModule": {"1": item()}},
        {"props": {"pageProps": {"itemInfo": {"itemStruct": item()}}}},
    ])
    def test_targeted_lookup(self, state):
        post = parse_photo_post(state)
        assert post.title == "Holiday pics"
        assert post.image_urls == [f"https://p16-sign.tiktokcdn.com/img{i}.jpeg" for i in range(3)]

    def test_generic_scan_finds_renamed_structure(self):
        state = {"somewhere": {"deeper": [{"gallery": images(2, prefix="https://cdn/x")}]}}
        post = parse_photo_post(state)
        assert post.title == "TikTok photos"
        assert post.image_urls == ["https://cdn/x0.jpeg", "https://cdn/x1.jpeg"]

    def test_scan_returns_every_match(self):
        state = {"a": images(1, prefix="https://a/"), "b": {"c": images(2, prefix="https://b/")}}
        assert list(scan_image_lists(state)) == [["https://a/0.jpeg"], ["https://b/0.jpeg", "https://b/1.jpeg"]]

    def test_caps_image_count(self):
        post = parse_photo_post(rehydration_state(n=15))
        assert len(post.image_urls) == MAX_IMAGES

    def test_duplicates_removed(self):
        state = {"x": images(2), "y": images(2)}
        assert len(parse_photo_post(state).image_urls) == 2

    def test_no_images(self):
        state = {"__DEFAULT_SCOPE__": {"webapp.video-detail": {"itemInfo": {"itemStruct": {"desc": "just a video"}}}}}
        with pytest.raises(PhotoPostError) as exc:
            parse_photo_post(state)
        assert exc.value.kind is ErrorKind.IMAGES_NOT_FOUND


def test_is_photo_post():
    assert is_photo_post(POST_URL)
    assert not is_photo_post("https://www.tiktok.com/@someone/video/7300000000000000000")
    assert not is_photo_post("https://example.com/photo/1")


class TestFetcher:
    @pytest.mark.asyncio
    async def test_fetch_resolve_and_download(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "vt.tiktok.com":
                return httpx.Response(302, headers={"Location": POST_URL})
            if request.url.path.startswith("/@someone/photo/"):
                assert request.headers["Referer"] == "https://www.tiktok.com/"
                return httpx.Response(200, text=rehydration_html(rehydration_state(n=2)))
            if request.url.path == "/img1.jpeg":
                return httpx.Response(403)
            return httpx.Response(200, content=b"jpeg-bytes")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        fetcher = PhotoPostFetcher(client)

        url = await fetcher.resolve_url("https://vt.tiktok.com/ZSabc/")
        assert url == POST_URL
        assert await fetcher.resolve_url(POST_URL) == POST_URL

        post = await fetcher.fetch_photo_post(url)
        assert len(post.image_urls) == 2

        downloaded = await fetcher.download_images(post.image_urls)
        assert downloaded == [b"jpeg-bytes"]

        await fetcher.close()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        with pytest.raises(httpx.HTTPStatusError):
            await PhotoPostFetcher(client).fetch_photo_post(POST_URL)
        await client.aclose()
