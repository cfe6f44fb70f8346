"""
Integration tests for the scrape pipeline: validation, fetch, extraction,
embed resolution, retries and media download working together.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from aioresponses import aioresponses
from postquarry import extract_post
from postquarry.extractor.models import ErrorCode, ExtractionError, MediaKind
from postquarry.observability.metrics import METRICS
from postquarry.scraper import PostScraper

from tests.helpers import metric_delta
from tests.helpers.post_pages import (
    DOCUMENT_FROM_EMBED,
    DOCUMENT_ONE,
    EMBED_FRAME,
    IMG_LARGE_THUMB,
    IMG_OG,
    IMG_ONE,
    IMG_TWO,
    POST_URL,
    SLIDE_ONE,
    SLIDE_TWO,
    VIDEO_ONE,
    VIDEO_TWO,
    auth_wall_page,
    build_post_page,
    document_post_page,
    embed_frame_page,
    image_post_page,
    video_post_page,
)

pytestmark = pytest.mark.integration


class TestExtractPost:
    @pytest.mark.asyncio
    async def test_image_post(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=image_post_page(), content_type="text/html")

            with metric_delta(METRICS["scrape_attempts"], outcome="success"):
                result = await scraper.extract_post(POST_URL)

        assert result.text == "Shipping day! Proud of the team."
        assert result.image_urls == (IMG_ONE, IMG_TWO, IMG_LARGE_THUMB)
        assert result.video_urls == ()
        assert result.document_urls == ()

    @pytest.mark.asyncio
    async def test_video_post(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=video_post_page(), content_type="text/html")

            result = await scraper.extract_post(POST_URL)

        assert result.text == "Watch this"
        assert result.video_urls == (VIDEO_ONE, VIDEO_TWO)

    @pytest.mark.asyncio
    async def test_document_post_with_embed_frame(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=document_post_page(), content_type="text/html")
            m.get(EMBED_FRAME, status=200, body=embed_frame_page(), content_type="text/html")

            result = await scraper.extract_post(POST_URL)

        assert result.text == "Slides from the talk"
        assert result.image_urls == (SLIDE_ONE, SLIDE_TWO)
        assert result.document_urls == (DOCUMENT_ONE, DOCUMENT_FROM_EMBED)

    @pytest.mark.asyncio
    async def test_failed_embed_frame_does_not_fail_the_scrape(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=document_post_page(), content_type="text/html")
            m.get(EMBED_FRAME, status=503, body="busy", content_type="text/html")

            result = await scraper.extract_post(POST_URL)

        assert result.document_urls == (DOCUMENT_ONE,)

    @pytest.mark.asyncio
    async def test_og_image_fallback_when_no_media(self, scraper):
        html = build_post_page(
            '<span class="attributed-text-segment-list__content">Text only</span>',
            head=f'<meta property="og:image" content="{IMG_OG}">',
        )
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=html, content_type="text/html")

            result = await scraper.extract_post(POST_URL)

        assert result.image_urls == (IMG_OG,)

    @pytest.mark.asyncio
    async def test_bare_domain_is_fetched_from_canonical_host(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=image_post_page(), content_type="text/html")

            result = await scraper.extract_post(POST_URL.replace("www.linkedin.com", "linkedin.com") + "#top")

        assert result.text

    @pytest.mark.asyncio
    async def test_media_request_roundtrip(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=video_post_page(), content_type="text/html")
            m.get(VIDEO_ONE, status=200, body=b"first", content_type="video/mp4")
            m.get(VIDEO_TWO, status=200, body=b"second", content_type="video/mp4")

            result = await scraper.extract_post(POST_URL)
            media = await scraper.download_media(result.media_requests())

        assert [item.filename for item in media] == ["linkedin-video-1.mp4", "linkedin-video-2.mp4"]
        assert all(item.media_type is MediaKind.VIDEO for item in media)


class TestExtractPostErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        ["", "https://example.com/posts/x", "http://www.linkedin.com/posts/x", "https://www.linkedin.com/in/jane"],
    )
    async def test_invalid_url_makes_no_request(self, test_config, url):
        observer = Mock()
        async with PostScraper(test_config, on_retry=observer) as scraper:
            scraper.client.fetch_guarded = AsyncMock()

            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(url)

        assert exc_info.value.code is ErrorCode.INVALID_URL
        assert not exc_info.value.retryable
        scraper.client.fetch_guarded.assert_not_called()
        observer.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 999])
    async def test_protected_statuses(self, scraper, status):
        scraper.client.fetch_guarded = AsyncMock(return_value=Mock(status=status, ok=False))

        with pytest.raises(ExtractionError) as exc_info:
            await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.PRIVATE_OR_PROTECTED
        assert scraper.client.fetch_guarded.await_count == 3

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_scrape_failed(self, scraper):
        scraper.client.fetch_guarded = AsyncMock(side_effect=RuntimeError("session went away"))

        with metric_delta(METRICS["scrape_attempts"], 3, outcome="SCRAPE_FAILED"):
            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.SCRAPE_FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert scraper.client.fetch_guarded.await_count == 3

    @pytest.mark.asyncio
    async def test_auth_wall_page(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=auth_wall_page(), content_type="text/html", repeat=True)

            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.PRIVATE_OR_PROTECTED

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self, test_config):
        attempts = []
        async with PostScraper(test_config, on_retry=lambda error, attempt: attempts.append(attempt)) as scraper:
            with aioresponses() as m:
                m.get(POST_URL, status=500, body="oops", content_type="text/html", repeat=True)

                with pytest.raises(ExtractionError) as exc_info:
                    await scraper.extract_post(POST_URL)

                assert sum(len(calls) for calls in m.requests.values()) == 3

        assert exc_info.value.code is ErrorCode.SCRAPE_FAILED
        assert attempts == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_then_success(self, test_config):
        observer = Mock()
        async with PostScraper(test_config, on_retry=observer) as scraper:
            with aioresponses() as m:
                m.get(POST_URL, status=502, body="bad gateway", content_type="text/html")
                m.get(POST_URL, status=200, body=image_post_page(), content_type="text/html")

                result = await scraper.extract_post(POST_URL)

        assert result.image_urls[0] == IMG_ONE
        observer.assert_called_once()
        error, attempt = observer.call_args.args
        assert isinstance(error, ExtractionError)
        assert error.code is ErrorCode.SCRAPE_FAILED
        assert attempt == 1

    @pytest.mark.asyncio
    async def test_text_not_found(self, scraper):
        html = "<html><head><title>Post</title></head><body><div>no post markup</div></body></html>"
        with aioresponses() as m:
            m.get(POST_URL, status=200, body=html, content_type="text/html", repeat=True)

            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.TEXT_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.security
    async def test_redirect_off_site_fails_scrape(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=302, headers={"Location": "https://evil.example/"}, repeat=True)

            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.SCRAPE_FAILED

    @pytest.mark.asyncio
    @pytest.mark.security
    async def test_redirect_to_media_host_is_refused_for_pages(self, scraper):
        with aioresponses() as m:
            m.get(POST_URL, status=302, headers={"Location": "https://media.licdn.com/posts/x"}, repeat=True)

            with pytest.raises(ExtractionError) as exc_info:
                await scraper.extract_post(POST_URL)

        assert exc_info.value.code is ErrorCode.SCRAPE_FAILED


@pytest.mark.asyncio
async def test_module_level_extract_post(test_config):
    with aioresponses() as m:
        m.get(POST_URL, status=200, body=image_post_page(), content_type="text/html")

        result = await extract_post(POST_URL, test_config)

    assert result.to_dict()["image_urls"] == [IMG_ONE, IMG_TWO, IMG_LARGE_THUMB]
