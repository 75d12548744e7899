from tests.conftest import register, sql


def test_dashboard(client, user, catalogue, content_snare):
    sql("UPDATE profiles SET migration_goal = 'overseas_job' WHERE user_id = :uid", {"uid": user["user_id"]})
    client.post(f"/api/courses/{catalogue['courses']['english']}/favorite", headers=user["headers"])
    client.post("/api/course-applications", headers=user["headers"], json={
        "course_id": catalogue["courses"]["web"], "client_id": "77",
        "intake_date_id": catalogue["intakes"]["web_sept"],
    })
    client.post("/api/visa/plans", headers=user["headers"], json={
        "name": "カナダ就労ルート", "items": [{"visa_type_id": catalogue["visa_types"]["study"]}]
    })

    body = client.get("/api/dashboard", headers=user["headers"]).json()
    assert body["goal_label"] == "海外就職"
    assert [a["status"] for a in body["applications"]] == ["draft"]
    assert [f["name"] for f in body["favorites"]] == ["Business English"]
    assert [p["name"] for p in body["visa_plans"]] == ["カナダ就労ルート"]
    assert body["study_plan"]["percent"] == 25
    assert all(r["name"] != "Web Development Co-op" for r in body["recommendations"])


def test_dashboard_after_completed_review(client, user, admin, catalogue):
    plan = client.post("/api/visa/plans", headers=user["headers"], json={
        "name": "学生ビザ", "items": [{"visa_type_id": catalogue["visa_types"]["study"]}]
    }).json()
    review = client.post(f"/api/visa/plans/{plan['plan_id']}/submit", headers=user["headers"]).json()
    client.put(f"/api/admin/visa-reviews/{review['review_id']}", headers=admin["headers"], json={"status": "completed"})

    study_plan = client.get("/api/dashboard", headers=user["headers"]).json()["study_plan"]
    assert study_plan["percent"] == 75
    assert [s["completed"] for s in study_plan["steps"]] == [True, True, True, False]


def test_dashboard_requires_login(client):
    assert client.get("/api/dashboard").status_code == 401


class TestStatistics:
    def test_user_distributions(self, client, admin, user, other_user):
        sql("UPDATE profiles SET migration_goal = 'overseas_job', english_level = 'intermediate' WHERE user_id = :uid",
            {"uid": user["user_id"]})
        sql("UPDATE profiles SET migration_goal = 'overseas_job', english_level = '' WHERE user_id = :uid",
            {"uid": other_user["user_id"]})

        body = client.get("/api/statistics/users", headers=admin["headers"]).json()
        assert body["total_users"] == 3
        assert body["migration_goal"] == [{"value": "overseas_job", "count": 2}, {"value": "未設定", "count": 1}]
        assert body["english_level"] == [{"value": "未設定", "count": 2}, {"value": "intermediate", "count": 1}]
        assert body["age_range"] == [{"value": "未設定", "count": 3}]

    def test_school_counts(self, client, admin, user, catalogue):
        client.post(f"/api/courses/{catalogue['courses']['culinary']}/favorite", headers=user["headers"])
        body = client.get("/api/statistics/schools", headers=admin["headers"]).json()
        assert body == [
            {"school_id": catalogue["schools"]["lakeshore"], "name": "Lakeshore Institute",
             "course_count": 1, "application_count": 0, "favorite_count": 1},
            {"school_id": catalogue["schools"]["maple"], "name": "Maple College",
             "course_count": 2, "application_count": 0, "favorite_count": 0},
        ]

    def test_admin_only(self, client, user):
        assert client.get("/api/statistics/users", headers=user["headers"]).status_code == 403

    def test_new_account_counts(self, client, admin):
        register(client, "jiro@example.com", first_name="Jiro")
        body = client.get("/api/statistics/users", headers=admin["headers"]).json()
        assert body["total_users"] == 2
