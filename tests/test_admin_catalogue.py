import pytest

from frog_portal.db import schema
from tests.conftest import insert, scalar, sql


class TestSchools:
    def test_create_update_delete(self, client, admin, catalogue):
        created = client.post("/api/admin/schools", headers=admin["headers"], json={
            "name": "Harbour Academy", "goal_location_id": catalogue["locations"]["vancouver"],
            "website": "https://harbour.example.com"
        })
        assert created.status_code == 201, created.text
        school = created.json()
        assert school["city"] == "Vancouver"
        assert school["courses"] == []

        updated = client.put(f"/api/admin/schools/{school['school_id']}", headers=admin["headers"],
                             json={"description": "港の近くの学校", "website": None})
        assert updated.status_code == 200
        assert updated.json()["description"] == "港の近くの学校"
        assert updated.json()["website"] is None
        assert updated.json()["name"] == "Harbour Academy"

        insert(schema.school_photos, school_id=school["school_id"], image_url="/media/school-photos/a.jpg")
        deleted = client.delete(f"/api/admin/schools/{school['school_id']}", headers=admin["headers"])
        assert deleted.status_code == 200
        assert scalar("SELECT COUNT(*) FROM schools WHERE school_id = :sid", {"sid": school["school_id"]}) == 0
        assert scalar("SELECT COUNT(*) FROM school_photos WHERE school_id = :sid",
                      {"sid": school["school_id"]}) == 0

    def test_unknown_location(self, client, admin):
        response = client.post("/api/admin/schools", headers=admin["headers"],
                               json={"name": "Nowhere", "goal_location_id": 999})
        assert response.status_code == 400

    def test_null_name_is_rejected(self, client, admin, catalogue):
        response = client.put(f"/api/admin/schools/{catalogue['schools']['maple']}", headers=admin["headers"],
                              json={"name": None})
        assert response.status_code == 422

    def test_school_with_courses_is_kept(self, client, admin, catalogue):
        response = client.delete(f"/api/admin/schools/{catalogue['schools']['maple']}", headers=admin["headers"])
        assert response.status_code == 400
        assert scalar("SELECT COUNT(*) FROM schools") == 2

    def test_admin_only(self, client, user):
        response = client.post("/api/admin/schools", headers=user["headers"], json={"name": "Harbour Academy"})
        assert response.status_code == 403


class TestCourses:
    def test_admin_sets_form_template(self, client, admin, catalogue):
        created = client.post(f"/api/admin/schools/{catalogue['schools']['lakeshore']}/courses",
                              headers=admin["headers"],
                              json={"name": "Pastry Diploma", "content_snare_template_id": "tmpl-9",
                                    "migration_goals": ["find_new_home"]})
        assert created.status_code == 201, created.text
        course = created.json()
        assert course["accepts_online_application"] is True
        assert scalar("SELECT migration_goals FROM courses WHERE course_id = :cid",
                      {"cid": course["course_id"]}) == "find_new_home"

        updated = client.put(f"/api/admin/courses/{course['course_id']}", headers=admin["headers"],
                             json={"content_snare_template_id": None})
        assert updated.status_code == 200
        assert updated.json()["accepts_online_application"] is False

    def test_empty_update(self, client, admin, catalogue):
        response = client.put(f"/api/admin/courses/{catalogue['courses']['web']}", headers=admin["headers"], json={})
        assert response.status_code == 400

    def test_unknown_school(self, client, admin):
        response = client.post("/api/admin/schools/999/courses", headers=admin["headers"], json={"name": "Ghost"})
        assert response.status_code == 404

    def test_course_with_applications_is_kept(self, client, admin, user, catalogue):
        insert(schema.course_applications, user_id=user["user_id"], course_id=catalogue["courses"]["web"])
        response = client.delete(f"/api/admin/courses/{catalogue['courses']['web']}", headers=admin["headers"])
        assert response.status_code == 400

    def test_delete_removes_children(self, client, admin, catalogue):
        web = catalogue["courses"]["web"]
        response = client.delete(f"/api/admin/courses/{web}", headers=admin["headers"])
        assert response.status_code == 200
        for table in ("course_intake_dates", "course_subjects", "course_job_positions"):
            assert scalar(f"SELECT COUNT(*) FROM {table} WHERE course_id = :cid", {"cid": web}) == 0


class TestPhotos:
    def test_add_upload_and_delete(self, client, admin, catalogue):
        url = f"/api/admin/schools/{catalogue['schools']['maple']}/photos"
        added = client.post(url, headers=admin["headers"], json={"image_url": "https://img.example.com/campus.jpg"})
        assert added.status_code == 201

        uploaded = client.post(f"{url}/upload", headers=admin["headers"],
                               files={"file": ("class.jpg", b"jpeg-bytes", "image/jpeg")})
        assert uploaded.status_code == 201
        assert uploaded.json()["image_url"].startswith("/media/school-photos/")

        deleted = client.delete(f"/api/admin/photos/{added.json()['photo_id']}", headers=admin["headers"])
        assert deleted.status_code == 200
        assert scalar("SELECT COUNT(*) FROM school_photos") == 1
        assert client.delete(f"/api/admin/photos/{added.json()['photo_id']}",
                             headers=admin["headers"]).status_code == 404

    def test_course_from_other_school(self, client, admin, catalogue):
        response = client.post(f"/api/admin/schools/{catalogue['schools']['maple']}/photos", headers=admin["headers"],
                               json={"image_url": "https://img.example.com/kitchen.jpg",
                                     "course_id": catalogue["courses"]["culinary"]})
        assert response.status_code == 400


class TestJobPositions:
    def test_create_and_rename(self, client, admin):
        created = client.post("/api/admin/job-positions", headers=admin["headers"],
                              json={"title": "Barista", "industry": "Hospitality"})
        assert created.status_code == 201
        job_id = created.json()["job_position_id"]

        renamed = client.put(f"/api/admin/job-positions/{job_id}", headers=admin["headers"],
                             json={"title": "Head Barista", "industry": "Hospitality"})
        assert renamed.json()["title"] == "Head Barista"
        assert scalar("SELECT title FROM job_positions WHERE job_position_id = :jid", {"jid": job_id}) == "Head Barista"

    def test_delete_clears_links_and_profiles(self, client, admin, user, catalogue):
        developer = catalogue["jobs"]["developer"]
        sql("UPDATE profiles SET future_occupation = :jid WHERE user_id = :uid",
            {"jid": developer, "uid": user["user_id"]})

        response = client.delete(f"/api/admin/job-positions/{developer}", headers=admin["headers"])
        assert response.status_code == 200
        assert scalar("SELECT COUNT(*) FROM course_job_positions WHERE job_position_id = :jid", {"jid": developer}) == 0
        assert scalar("SELECT future_occupation FROM profiles WHERE user_id = :uid", {"uid": user["user_id"]}) is None

    def test_unknown(self, client, admin):
        assert client.put("/api/admin/job-positions/999", headers=admin["headers"],
                          json={"title": "Ghost"}).status_code == 404
        assert client.delete("/api/admin/job-positions/999", headers=admin["headers"]).status_code == 404


class TestVisaTypes:
    @pytest.fixture
    def visa_type(self, client, admin):
        response = client.post("/api/admin/visa-types", headers=admin["headers"], json={
            "name": "Post-Graduation Work Permit", "country": "Canada",
            "requirements": [
                {"description": "卒業証明書"},
                {"description": "パスポート", "additional_info": "有効期限が1年以上"},
            ]
        })
        assert response.status_code == 201, response.text
        return response.json()

    def test_requirements_keep_order(self, client, visa_type):
        assert [(r["description"], r["order_index"]) for r in visa_type["requirements"]] == [
            ("卒業証明書", 0), ("パスポート", 1)
        ]
        listed = {t["name"]: t for t in client.get("/api/visa/types").json()}
        assert listed["Post-Graduation Work Permit"]["requirements"][1]["additional_info"] == "有効期限が1年以上"

    def test_update_replaces_requirements_when_sent(self, client, admin, visa_type):
        url = f"/api/admin/visa-types/{visa_type['visa_type_id']}"
        renamed = client.put(url, headers=admin["headers"], json={"description": "卒業後就労許可"})
        assert len(renamed.json()["requirements"]) == 2

        replaced = client.put(url, headers=admin["headers"], json={"requirements": [{"description": "成績証明書"}]})
        assert [r["description"] for r in replaced.json()["requirements"]] == ["成績証明書"]
        assert replaced.json()["description"] == "卒業後就労許可"

    def test_null_name_is_rejected(self, client, admin, visa_type):
        response = client.put(f"/api/admin/visa-types/{visa_type['visa_type_id']}", headers=admin["headers"],
                              json={"name": None})
        assert response.status_code == 422

    def test_delete_removes_requirements(self, client, admin, visa_type):
        response = client.delete(f"/api/admin/visa-types/{visa_type['visa_type_id']}", headers=admin["headers"])
        assert response.status_code == 200
        assert scalar("SELECT COUNT(*) FROM visa_requirements") == 0

    def test_type_in_a_plan_is_kept(self, client, admin, user, catalogue):
        study = catalogue["visa_types"]["study"]
        client.post("/api/visa/plans", headers=user["headers"],
                    json={"name": "カナダ計画", "items": [{"visa_type_id": study}]})
        response = client.delete(f"/api/admin/visa-types/{study}", headers=admin["headers"])
        assert response.status_code == 400

    def test_unknown(self, client, admin):
        assert client.put("/api/admin/visa-types/999", headers=admin["headers"],
                          json={"name": "Ghost"}).status_code == 404
