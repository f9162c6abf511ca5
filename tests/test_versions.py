import httpx
import pytest
import respx

from isod.versions import (
    ApiVersionDetector,
    CompositeVersionDetector,
    FeedVersionDetector,
    GitHubVersionDetector,
    ReleaseType,
    StaticVersionDetector,
    VersionDetectionError,
    VersionDetector,
    VersionInfo,
    WebScrapingDetector,
    api,
    composite,
    github,
    rss_feed,
    static_versions,
    web_scraper,
)

FEED_URL = "https://feeds.example.com/news"
PAGE_URL = "https://releases.example.com/"
API_URL = "https://api.example.com/tags"
GITHUB_URL = "https://api.github.com/repos/owner/repo/releases"


class _FailingDetector(VersionDetector):
    async def detect_versions(self):
        raise VersionDetectionError("boom")


def test_version_parts_split_on_separators():
    assert VersionInfo("24.04", ReleaseType.LTS).version_parts() == [24, 4]
    assert VersionInfo("2024.06.01", ReleaseType.STABLE).version_parts() == [2024, 6, 1]


def test_version_parts_skip_non_numeric_pieces():
    assert VersionInfo("13.0-rc1", ReleaseType.RC).version_parts() == [13, 0]
    assert VersionInfo("latest", ReleaseType.STABLE).version_parts() == []


def test_release_type_outranks_version_number():
    lts = VersionInfo("20.04", ReleaseType.LTS)
    stable = VersionInfo("23.10", ReleaseType.STABLE)
    assert lts > stable
    assert stable < lts


def test_weekly_ranks_above_daily():
    assert VersionInfo("1", ReleaseType.WEEKLY) > VersionInfo("9", ReleaseType.DAILY)


def test_same_type_compares_numerically():
    assert VersionInfo("10", ReleaseType.STABLE) > VersionInfo("9", ReleaseType.STABLE)
    assert VersionInfo("1.2", ReleaseType.STABLE) > VersionInfo("1", ReleaseType.STABLE)
    assert VersionInfo("12.10.0", ReleaseType.STABLE) < VersionInfo("12.11.0", ReleaseType.STABLE)


def test_sorting_orders_by_type_then_number():
    versions = [
        VersionInfo("39", ReleaseType.STABLE),
        VersionInfo("41", ReleaseType.BETA),
        VersionInfo("40", ReleaseType.STABLE),
    ]
    assert [v.version for v in sorted(versions)] == ["41", "39", "40"]


def test_builders_return_copies():
    base = VersionInfo("24.04", ReleaseType.LTS)
    dated = base.with_release_date("2024-04-25").with_notes("Noble Numbat - Long Term Support")
    assert base.release_date is None
    assert dated.release_date == "2024-04-25"
    assert dated.notes == "Noble Numbat - Long Term Support"
    linked = base.with_download_base("https://releases.ubuntu.com/24.04/").with_changelog(
        "https://example.com/changes"
    )
    assert linked.download_url_base == "https://releases.ubuntu.com/24.04/"
    assert linked.changelog_url == "https://example.com/changes"


def test_display_format():
    info = VersionInfo("24.04", ReleaseType.LTS).with_release_date("2024-04-25")
    assert str(info) == "24.04 (LTS) - 2024-04-25"
    assert str(VersionInfo("latest", ReleaseType.STABLE)) == "latest (Stable)"


def test_is_supported_depends_on_end_of_life():
    info = VersionInfo("20.04", ReleaseType.LTS)
    assert info.is_supported()
    info.end_of_life = "2025-05-31"
    assert not info.is_supported()


@pytest.mark.asyncio
async def test_static_detector_returns_its_versions():
    versions = [VersionInfo("40", ReleaseType.STABLE), VersionInfo("39", ReleaseType.STABLE)]
    detector = StaticVersionDetector(versions)
    assert await detector.detect_versions() == versions
    assert await detector.version_exists("39")
    assert not await detector.version_exists("38")


@pytest.mark.asyncio
async def test_latest_stable_prefers_lts_and_ignores_beta():
    detector = static_versions(
        [
            VersionInfo("23.10", ReleaseType.STABLE),
            VersionInfo("24.04", ReleaseType.LTS),
            VersionInfo("25.04", ReleaseType.BETA),
        ]
    )
    latest = await detector.latest_stable()
    assert latest.version == "24.04"


@pytest.mark.asyncio
async def test_latest_stable_without_stable_versions_raises():
    detector = static_versions([VersionInfo("13.0", ReleaseType.BETA)])
    with pytest.raises(VersionDetectionError):
        await detector.latest_stable()


@pytest.mark.asyncio
async def test_composite_sorts_dedups_and_skips_failures():
    detector = (
        composite()
        .add_detector(_FailingDetector())
        .add_detector(static_versions([VersionInfo("39", ReleaseType.STABLE)]))
        .add_detector(
            static_versions(
                [VersionInfo("40", ReleaseType.STABLE), VersionInfo("39", ReleaseType.STABLE)]
            )
        )
    )
    versions = await detector.detect_versions()
    assert [v.version for v in versions] == ["40", "39"]
    assert versions == sorted(versions, reverse=True)


@pytest.mark.asyncio
async def test_composite_with_only_failures_is_empty():
    detector = CompositeVersionDetector().add_detector(_FailingDetector())
    assert await detector.detect_versions() == []
    assert len(detector.detectors) == 1


@pytest.mark.asyncio
async def test_feed_detector_extracts_unique_versions_newest_first():
    body = "Fedora 39 is out. Fedora 40 beta. Fedora 39 again. Fedora 38."
    with respx.mock() as router:
        route = router.get(FEED_URL).mock(return_value=httpx.Response(200, text=body))
        detector = rss_feed(FEED_URL, r"Fedora (\d+)", ReleaseType.STABLE)
        versions = await detector.detect_versions()
    assert [v.version for v in versions] == ["40", "39", "38"]
    assert all(v.release_type is ReleaseType.STABLE for v in versions)
    assert route.calls.last.request.headers["User-Agent"] == "isod/0.1.0"


@pytest.mark.asyncio
async def test_feed_detector_keeps_twenty_newest():
    body = " ".join(f"Fedora {n}" for n in range(1, 26))
    with respx.mock() as router:
        router.get(FEED_URL).mock(return_value=httpx.Response(200, text=body))
        versions = await FeedVersionDetector(
            FEED_URL, r"Fedora (\d+)", ReleaseType.STABLE
        ).detect_versions()
    assert len(versions) == 20
    assert versions[0].version == "25"
    assert versions == sorted(versions, reverse=True)


@pytest.mark.asyncio
async def test_feed_detector_http_error_status_raises():
    with respx.mock() as router:
        router.get(FEED_URL).mock(return_value=httpx.Response(500))
        with pytest.raises(VersionDetectionError, match="RSS feed request failed"):
            await FeedVersionDetector(FEED_URL, r"(\d+)", ReleaseType.STABLE).detect_versions()


@pytest.mark.asyncio
async def test_feed_detector_invalid_regex_raises():
    with respx.mock() as router:
        router.get(FEED_URL).mock(return_value=httpx.Response(200, text="x"))
        with pytest.raises(VersionDetectionError, match="Invalid version regex"):
            await FeedVersionDetector(FEED_URL, r"(\d+", ReleaseType.STABLE).detect_versions()


@pytest.mark.asyncio
async def test_connection_failure_raises_detection_error():
    with respx.mock() as router:
        router.get(FEED_URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(VersionDetectionError):
            await FeedVersionDetector(FEED_URL, r"(\d+)", ReleaseType.STABLE).detect_versions()


@pytest.mark.asyncio
async def test_web_scraper_marks_versions_stable():
    body = "<td>12.10</td><td>12.11</td><td>11.11</td>"
    with respx.mock() as router:
        router.get(PAGE_URL).mock(return_value=httpx.Response(200, text=body))
        detector = web_scraper(PAGE_URL, ".version", r"(\d+\.\d+)")
        versions = await detector.detect_versions()
    assert [v.version for v in versions] == ["12.11", "12.10", "11.11"]
    assert {v.release_type for v in versions} == {ReleaseType.STABLE}
    assert isinstance(detector, WebScrapingDetector)


@pytest.mark.asyncio
async def test_web_scraper_error_status_raises():
    with respx.mock() as router:
        router.get(PAGE_URL).mock(return_value=httpx.Response(404))
        with pytest.raises(VersionDetectionError, match="Web request failed"):
            await WebScrapingDetector(PAGE_URL, ".v", r"(\d+)").detect_versions()


@pytest.mark.asyncio
async def test_github_detector_filters_and_classifies():
    releases = [
        {"tag_name": "v2.0", "prerelease": False, "draft": False,
         "published_at": "2023-04-18T10:30:00Z", "name": "Two"},
        {"tag_name": "v2.1-rc1", "prerelease": True, "draft": False, "published_at": None},
        {"tag_name": "v3.0", "prerelease": False, "draft": True},
    ]
    with respx.mock() as router:
        route = router.get(GITHUB_URL).mock(return_value=httpx.Response(200, json=releases))
        stable_only = await github("owner", "repo", False).detect_versions()
        with_pre = await github("owner", "repo", True).detect_versions()
    assert [v.version for v in stable_only] == ["2.0"]
    assert stable_only[0].release_date == "2023-04-18"
    assert stable_only[0].release_type is ReleaseType.STABLE
    assert [(v.version, v.release_type) for v in with_pre] == [
        ("2.0", ReleaseType.STABLE),
        ("2.1-rc1", ReleaseType.RC),
    ]
    assert route.calls.last.request.headers["Accept"] == "application/vnd.github.v3+json"


@pytest.mark.asyncio
async def test_github_detector_strips_prefix():
    releases = [{"tag_name": "release-1.5", "prerelease": False, "draft": False}]
    with respx.mock() as router:
        router.get(GITHUB_URL).mock(return_value=httpx.Response(200, json=releases))
        detector = GitHubVersionDetector("owner", "repo", False).with_version_prefix("release-")
        versions = await detector.detect_versions()
    assert [v.version for v in versions] == ["1.5"]
    assert versions[0].release_date is None


@pytest.mark.asyncio
async def test_github_detector_rejects_malformed_json():
    with respx.mock() as router:
        router.get(GITHUB_URL).mock(return_value=httpx.Response(200, json=[{"name": "x"}]))
        with pytest.raises(VersionDetectionError, match="parse GitHub releases"):
            await GitHubVersionDetector("owner", "repo", False).detect_versions()


@pytest.mark.asyncio
async def test_api_detector_reads_simple_path():
    payload = [{"name": "2024.06.01"}, {"name": 7}, {"other": "x"}, {"name": "2024.05.01"}]
    with respx.mock() as router:
        router.get(API_URL).mock(return_value=httpx.Response(200, json=payload))
        versions = await api(API_URL, "$.name").detect_versions()
    assert [v.version for v in versions] == ["2024.06.01", "2024.05.01"]


@pytest.mark.asyncio
async def test_api_detector_ignores_complex_paths_and_objects():
    with respx.mock() as router:
        router.get(API_URL).mock(return_value=httpx.Response(200, json=[{"name": "1"}]))
        assert await ApiVersionDetector(API_URL, "$.[*].name").detect_versions() == []
        router.get(API_URL).mock(return_value=httpx.Response(200, json={"name": "1"}))
        assert await ApiVersionDetector(API_URL, "$.name").detect_versions() == []


@pytest.mark.asyncio
async def test_api_detector_bad_json_raises():
    with respx.mock() as router:
        router.get(API_URL).mock(return_value=httpx.Response(200, text="not json"))
        with pytest.raises(VersionDetectionError, match="parse API JSON"):
            await ApiVersionDetector(API_URL, "$.name").detect_versions()


@pytest.mark.asyncio
async def test_api_detector_sends_auth_header():
    with respx.mock() as router:
        route = router.get(API_URL).mock(return_value=httpx.Response(200, json=[]))
        detector = ApiVersionDetector(API_URL, "$.name")
        detector.auth_header = "Bearer token"
        assert await detector.detect_versions() == []
    assert route.calls.last.request.headers["Authorization"] == "Bearer token"