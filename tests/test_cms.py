import pytest
import requests

from frog_portal.services.cms_client import CMSError, MicroCMSClient, ResponseCache, get_optimized_image_url


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestImageUrl:
    def test_appends_query(self):
        assert get_optimized_image_url("https://cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg?w=800&fm=webp&q=80"

    def test_existing_query_uses_ampersand(self):
        url = get_optimized_image_url("https://cdn.example.com/a.jpg?v=2", width=400, format="png", quality=60)
        assert url == "https://cdn.example.com/a.jpg?v=2&w=400&fm=png&q=60"

    def test_empty(self):
        assert get_optimized_image_url("") == ""
        assert get_optimized_image_url(None) == ""


class TestMicroCMSClient:
    def test_sends_api_key_and_caches(self):
        session = FakeSession([FakeResponse(payload={"contents": [], "totalCount": 0})])
        cms = MicroCMSClient(session=session, ttl=60)

        first = cms.get_list("blog", {"limit": 5})
        second = cms.get_list("blog", {"limit": 5})

        assert first == second
        assert len(session.calls) == 1
        assert "X-MICROCMS-API-KEY" in session.calls[0]["headers"]

    def test_list_and_detail_are_cached_separately(self):
        session = FakeSession([FakeResponse(payload={"a": 1}), FakeResponse(payload={"b": 2})])
        cms = MicroCMSClient(session=session, ttl=60)

        assert cms.get_list("blog") == {"a": 1}
        assert cms.get("blog") == {"b": 2}
        assert len(session.calls) == 2

    def test_force_refresh(self):
        session = FakeSession([FakeResponse(payload={"v": 1}), FakeResponse(payload={"v": 2})])
        cms = MicroCMSClient(session=session, ttl=60)

        cms.get("blog/post")
        assert cms.get("blog/post", force_refresh=True) == {"v": 2}

    def test_not_found(self):
        cms = MicroCMSClient(session=FakeSession([FakeResponse(status_code=404)]))
        with pytest.raises(CMSError) as exc:
            cms.get_post("missing")
        assert exc.value.status_code == 404

    def test_unreachable(self):
        cms = MicroCMSClient(session=FakeSession([requests.ConnectionError("down")]))
        with pytest.raises(CMSError) as exc:
            cms.list_posts()
        assert exc.value.status_code == 502

    def test_related_posts_swallow_errors(self):
        cms = MicroCMSClient(session=FakeSession([FakeResponse(status_code=500)]))
        assert cms.related_posts(school_name="Maple College") == []

    def test_related_posts_filter(self):
        session = FakeSession([FakeResponse(payload={"contents": [{"id": "p"}]})])
        cms = MicroCMSClient(session=session)
        assert cms.related_posts(course_name="Culinary Arts") == [{"id": "p"}]
        assert session.calls[0]["params"]["filters"] == "course_name[contains]Culinary Arts"


class TestResponseCache:
    def test_distinct_queries_stay_within_bound(self):
        session = FakeSession([FakeResponse(payload={"n": i}) for i in range(50)])
        cms = MicroCMSClient(session=session, ttl=60, max_entries=5)

        for i in range(50):
            cms.list_posts(q=f"term-{i}")
        assert len(cms._cache) == 5

    def test_least_recently_used_is_evicted(self):
        cache = ResponseCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a", ttl=60) == 1
        cache.set("c", 3)

        assert cache.get("b", ttl=60) is None
        assert cache.get("a", ttl=60) == 1
        assert cache.get("c", ttl=60) == 3

    def test_expired_entries_are_dropped(self):
        cache = ResponseCache(max_size=10)
        cache.set("a", 1)
        assert cache.get("a", ttl=0) is None
        assert len(cache) == 0


class TestInterviewRoutes:
    def test_list(self, client, cms):
        response = client.get("/api/interviews", params={"limit": 5, "q": "Maple"})
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 1
        post = body["contents"][0]
        assert post["slug"] == "maple-year"
        assert post["eyecatch_url"].endswith("?w=800&fm=webp&q=80")
        assert post["categories"] == ["interview"]
        assert cms.queries[-1] == {"limit": 5, "offset": 0, "q": "Maple"}

    def test_detail_and_missing(self, client, cms):
        assert client.get("/api/interviews/maple-year").json()["title"] == "Maple Collegeで学んだ1年"
        assert client.get("/api/interviews/nope").status_code == 404

    def test_related_posts_by_school(self, client, cms, catalogue):
        posts = client.get(f"/api/courses/{catalogue['courses']['english']}/related-posts").json()
        assert [p["id"] for p in posts] == ["post-1"]

    def test_related_posts_none(self, client, cms, catalogue):
        assert client.get(f"/api/courses/{catalogue['courses']['culinary']}/related-posts").json() == []
