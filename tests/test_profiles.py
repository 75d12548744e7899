from frog_portal.db import schema
from tests.conftest import insert, make_member

ONBOARDING = {
    "migration_goal": "overseas_job",
    "english_level": "B2",
    "work_experience": "3-5",
    "working_holiday": "yes",
    "age_range": "25-29",
    "abroad_timing": "within_year",
    "support_needed": "visa",
}


class TestProfile:
    def test_fresh_profile(self, client, user):
        body = client.get("/api/profiles/me", headers=user["headers"]).json()
        assert body["onboarding_completed"] is False
        assert body["onboarding_progress"] == 0
        assert body["profile_completion"] == 0
        assert body["is_member"] is False

    def test_partial_update(self, client, user, catalogue):
        response = client.put("/api/profiles/me", headers=user["headers"], json={
            "current_occupation": "Engineer", "future_occupation": catalogue["jobs"]["developer"]
        })
        assert response.status_code == 200
        body = response.json()
        assert body["current_occupation"] == "Engineer"
        assert body["first_name"] == "Taro"
        assert body["profile_completion"] == 22

    def test_empty_update(self, client, user):
        response = client.put("/api/profiles/me", headers=user["headers"], json={})
        assert response.status_code == 400

    def test_unknown_job_position(self, client, user):
        response = client.put("/api/profiles/me", headers=user["headers"], json={"future_occupation": 999})
        assert response.status_code == 400


class TestOnboarding:
    def test_completes_and_notifies(self, client, user, slack_calls):
        response = client.post("/api/profiles/me/onboarding", headers=user["headers"], json=ONBOARDING)
        assert response.status_code == 200
        body = response.json()
        assert body["onboarding_completed"] is True
        assert body["onboarding_progress"] == 100

        assert len(slack_calls) == 1
        assert "Taro Yamada" in slack_calls[0]["message"]
        assert {"title": "目標", "value": "海外就職", "short": True} in slack_calls[0]["fields"]

    def test_invalid_goal(self, client, user):
        response = client.post("/api/profiles/me/onboarding", headers=user["headers"],
                               json={**ONBOARDING, "migration_goal": "space_travel"})
        assert response.status_code == 422


class TestAvatar:
    def test_upload(self, client, user):
        response = client.post(
            "/api/profiles/me/avatar", headers=user["headers"],
            files={"file": ("me.png", b"\x89PNG fake image", "image/png")}
        )
        assert response.status_code == 200
        assert response.json()["avatar_url"].startswith("/media/avatars/")

    def test_rejects_other_formats(self, client, user):
        response = client.post(
            "/api/profiles/me/avatar", headers=user["headers"],
            files={"file": ("me.pdf", b"%PDF-1.4", "application/pdf")}
        )
        assert response.status_code == 400


class TestAdminProfiles:
    def test_list_and_search(self, client, admin, user, other_user):
        body = client.get("/api/admin/profiles", headers=admin["headers"]).json()
        assert body["total"] == 3
        assert {p["email"] for p in body["profiles"]} == {
            "admin@example.com", "taro@example.com", "hanako@example.com"
        }
        assert all(p["created_at_label"].endswith("日") for p in body["profiles"])

        found = client.get("/api/admin/profiles", headers=admin["headers"], params={"q": "SATO"}).json()
        assert found["total"] == 1
        assert found["profiles"][0]["first_name"] == "Hanako"

    def test_total_counts_beyond_page(self, client, admin, user, other_user):
        body = client.get("/api/admin/profiles", headers=admin["headers"], params={"limit": 1}).json()
        assert len(body["profiles"]) == 1
        assert body["total"] == 3

    def test_detail(self, client, admin, user, catalogue):
        client.post("/api/profiles/me/onboarding", headers=user["headers"], json=ONBOARDING)
        make_member(user["user_id"])
        client.post("/api/visa/plans", headers=user["headers"],
                    json={"name": "カナダ計画", "items": [{"visa_type_id": catalogue["visa_types"]["study"]}]})
        insert(schema.course_applications, user_id=user["user_id"], course_id=catalogue["courses"]["web"])
        insert(schema.user_files, user_id=user["user_id"], name="passport.pdf", path="documents/1/p.pdf",
               url="/media/documents/1/p.pdf", size=2048, content_type="application/pdf")

        body = client.get(f"/api/admin/profiles/{user['user_id']}", headers=admin["headers"]).json()
        assert body["profile"]["email"] == "taro@example.com"
        assert body["profile"]["is_member"] is True
        assert body["role"] == "user"
        assert body["goal_label"] == "海外就職"
        assert [a["status"] for a in body["applications"]] == ["draft"]
        assert body["visa_plans"][0]["name"] == "カナダ計画"
        assert body["files"][0]["size_label"] == "2 KB"

    def test_unknown_profile(self, client, admin):
        assert client.get("/api/admin/profiles/999", headers=admin["headers"]).status_code == 404

    def test_admin_only(self, client, user):
        assert client.get("/api/admin/profiles", headers=user["headers"]).status_code == 403
