from frog_portal.db import schema
from tests.conftest import insert


def names(response):
    return [c["name"] for c in response.json()["courses"]]


class TestCourseList:
    def test_default_sort_by_name(self, client, catalogue):
        response = client.get("/api/courses")
        assert response.status_code == 200
        assert names(response) == ["Business English", "Culinary Arts", "Web Development Co-op"]
        assert response.json()["total"] == 3
        assert response.json()["active_filter_count"] == 0

    def test_course_summary_fields(self, client, catalogue):
        web = next(c for c in client.get("/api/courses").json()["courses"] if c["name"] == "Web Development Co-op")
        assert web["school_name"] == "Maple College"
        assert web["city"] == "Vancouver"
        assert web["intake_months"] == "1月、9月"
        assert [d["year"] for d in web["intake_dates"]] == [2030, 2031]
        assert web["accepts_online_application"] is True

    def test_filters_and_sort(self, client, catalogue):
        response = client.get("/api/courses", params={
            "category": ["IT", "Hospitality"], "sort": "price_desc"
        })
        assert names(response) == ["Culinary Arts", "Web Development Co-op"]
        assert response.json()["active_filter_count"] == 1

    def test_search_by_city(self, client, catalogue):
        assert names(client.get("/api/courses", params={"search": "toronto"})) == ["Culinary Arts"]

    def test_invalid_sort(self, client, catalogue):
        assert client.get("/api/courses", params={"sort": "random"}).status_code == 422

    def test_categories_and_locations(self, client, catalogue):
        assert client.get("/api/courses/categories").json() == ["Hospitality", "IT", "Language"]
        cities = [loc["city"] for loc in client.get("/api/courses/locations").json()]
        assert cities == ["Toronto", "Vancouver"]


class TestCourseDetail:
    def test_detail(self, client, catalogue):
        response = client.get(f"/api/courses/{catalogue['courses']['web']}")
        assert response.status_code == 200
        body = response.json()
        assert [s["title"] for s in body["subjects"]] == ["JavaScript"]
        assert [j["title"] for j in body["job_positions"]] == ["Web Developer"]
        assert body["tuition_label"] == "CA$18,500.00"

    def test_tuition_label_missing_without_price(self, client, catalogue):
        body = client.get(f"/api/courses/{catalogue['courses']['english']}").json()
        assert body["tuition_label"] is None

    def test_cover_photo_falls_back_to_school(self, client, catalogue):
        insert(schema.school_photos, school_id=catalogue["schools"]["maple"], image_url="/media/campus.jpg")
        body = client.get(f"/api/courses/{catalogue['courses']['english']}").json()
        assert body["image_url"] == "/media/campus.jpg"
        assert [p["image_url"] for p in body["photos"]] == ["/media/campus.jpg"]

    def test_missing(self, client, catalogue):
        assert client.get("/api/courses/999").status_code == 404


class TestFavorites:
    def test_toggle(self, client, user, catalogue):
        course_id = catalogue["courses"]["culinary"]
        url = f"/api/courses/{course_id}/favorite"

        assert client.post(url, headers=user["headers"]).json() == {"is_favorite": True}
        favorites = client.get("/api/favorites", headers=user["headers"]).json()
        assert [f["course_id"] for f in favorites] == [course_id]
        assert favorites[0]["is_favorite"] is True

        assert client.post(url, headers=user["headers"]).json() == {"is_favorite": False}
        assert client.get("/api/favorites", headers=user["headers"]).json() == []

    def test_favorite_flag_in_list_only_for_owner(self, client, user, other_user, catalogue):
        client.post(f"/api/courses/{catalogue['courses']['web']}/favorite", headers=user["headers"])

        mine = client.get("/api/courses", headers=user["headers"]).json()["courses"]
        theirs = client.get("/api/courses", headers=other_user["headers"]).json()["courses"]
        assert [c["is_favorite"] for c in mine] == [False, False, True]
        assert not any(c["is_favorite"] for c in theirs)

    def test_requires_login(self, client, catalogue):
        assert client.post(f"/api/courses/{catalogue['courses']['web']}/favorite").status_code == 401


class TestSchools:
    def test_list(self, client, catalogue):
        schools = client.get("/api/schools").json()
        assert [(s["name"], s["course_count"]) for s in schools] == [
            ("Lakeshore Institute", 1), ("Maple College", 2)
        ]

    def test_detail(self, client, catalogue):
        body = client.get(f"/api/schools/{catalogue['schools']['maple']}").json()
        assert body["categories"] == ["IT", "Language"]
        assert [c["name"] for c in body["courses"]] == ["Business English", "Web Development Co-op"]

    def test_missing(self, client, catalogue):
        assert client.get("/api/schools/999").status_code == 404


class TestJobPositions:
    def test_sorted_by_title(self, client, catalogue):
        titles = [j["title"] for j in client.get("/api/job-positions").json()]
        assert titles == ["Chef", "Web Developer"]
