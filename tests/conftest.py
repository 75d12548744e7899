import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="frog_portal_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'portal.db')}"
os.environ["MEDIA_ROOT"] = os.path.join(_TMP, "media")
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["SLACK_ADMIN_WEBHOOK_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from frog_portal.main import app
from frog_portal.db import schema
from frog_portal.db.postgres import engine
from frog_portal.api.routes import (
    application_routes, content_snare_routes, course_routes, cms_routes, subscription_routes
)
from frog_portal.services import advisor_service, slack_service
from frog_portal.services.cms_client import CMSError
from frog_portal.services.content_snare_client import ContentSnareError

PASSWORD = "password123"


# ============================================================
# DATABASE & CLIENT
# ============================================================

@pytest.fixture(autouse=True)
def fresh_schema():
    schema.metadata.drop_all(engine)
    schema.init_schema(engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


def sql(statement, params=None):
    with engine.begin() as conn:
        conn.execute(text(statement), params or {})


def scalar(statement, params=None):
    with engine.begin() as conn:
        return conn.execute(text(statement), params or {}).scalar()


def insert(table, **values):
    with engine.begin() as conn:
        result = conn.execute(table.insert().values(**values))
        return result.inserted_primary_key[0]


def register(client, email, first_name="Taro", last_name="Yamada"):
    response = client.post("/api/auth/register", json={
        "email": email, "password": PASSWORD, "first_name": first_name, "last_name": last_name
    })
    assert response.status_code == 201, response.text
    login = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    body = login.json()
    return {"user_id": body["user_id"], "headers": {"Authorization": f"Bearer {body['access_token']}"}}


@pytest.fixture
def user(client):
    return register(client, "taro@example.com")


@pytest.fixture
def other_user(client):
    return register(client, "hanako@example.com", first_name="Hanako", last_name="Sato")


@pytest.fixture
def admin(client):
    account = register(client, "admin@example.com", first_name="Admin", last_name="Frog")
    sql("UPDATE users SET role = 'admin' WHERE user_id = :uid", {"uid": account["user_id"]})
    return account


def make_member(user_id, subscription_id="sub_123", customer_id="cus_123"):
    sql("""
        UPDATE profiles SET is_member = :member, stripe_customer_id = :cus,
            stripe_subscription_id = :sub, subscription_status = 'active'
        WHERE user_id = :uid
    """, {"member": True, "cus": customer_id, "sub": subscription_id, "uid": user_id})


# ============================================================
# CATALOGUE
# ============================================================

@pytest.fixture
def catalogue():
    """Two schools in Canada, three courses, job positions and visa types."""
    vancouver = insert(schema.goal_locations, country="Canada", city="Vancouver")
    toronto = insert(schema.goal_locations, country="Canada", city="Toronto")

    maple = insert(schema.schools, name="Maple College", goal_location_id=vancouver,
                   website="https://maple.example.com")
    lakeshore = insert(schema.schools, name="Lakeshore Institute", goal_location_id=toronto)

    developer = insert(schema.job_positions, title="Web Developer", industry="IT")
    chef = insert(schema.job_positions, title="Chef", industry="Hospitality")

    web = insert(schema.courses, school_id=maple, name="Web Development Co-op", category="IT",
                 total_weeks=52, tuition_and_others="CA$18,500",
                 migration_goals="overseas_job,career_change", content_snare_template_id="tmpl-1")
    culinary = insert(schema.courses, school_id=lakeshore, name="Culinary Arts", category="Hospitality",
                      total_weeks=40, tuition_and_others="CA$25,000", migration_goals="find_new_home")
    english = insert(schema.courses, school_id=maple, name="Business English", category="Language",
                     migration_goals="improve_language")

    web_sept = insert(schema.course_intake_dates, course_id=web, month=9, year=2030, is_tentative=False)
    web_jan = insert(schema.course_intake_dates, course_id=web, month=1, day=5, year=2031, is_tentative=False)
    insert(schema.course_intake_dates, course_id=culinary, month=4)

    insert(schema.course_job_positions, course_id=web, job_position_id=developer)
    insert(schema.course_subjects, course_id=web, title="JavaScript")

    study = insert(schema.visa_types, name="Study Permit", description="学生ビザ", country="Canada")
    coop = insert(schema.visa_types, name="Co-op Work Permit", description="就労許可", country="Canada")
    holiday = insert(schema.visa_types, name="Working Holiday", description="ワーキングホリデー", country="Canada")

    return {
        "locations": {"vancouver": vancouver, "toronto": toronto},
        "schools": {"maple": maple, "lakeshore": lakeshore},
        "jobs": {"developer": developer, "chef": chef},
        "courses": {"web": web, "culinary": culinary, "english": english},
        "intakes": {"web_sept": web_sept, "web_jan": web_jan},
        "visa_types": {"study": study, "coop": coop, "holiday": holiday},
    }


# ============================================================
# INTEGRATION FAKES
# ============================================================

@pytest.fixture(autouse=True)
def slack_calls(monkeypatch):
    calls = []

    def fake_send(title, message, fields=None):
        calls.append({"title": title, "message": message, "fields": fields or []})
        return {"ok": True, "error": None}

    monkeypatch.setattr(slack_service, "send_admin_notification", fake_send)
    return calls


@pytest.fixture(autouse=True)
def webhook_events(monkeypatch):
    events = []

    def fake_record(source, event_type, payload, handled=True):
        events.append({"source": source, "event_type": event_type, "payload": payload, "handled": handled})
        return "evt"

    monkeypatch.setattr(content_snare_routes, "record_webhook_event", fake_record)
    monkeypatch.setattr(subscription_routes, "record_webhook_event", fake_record)
    return events


class FakeContentSnare:
    def __init__(self):
        self.calls = []
        self.fail_with = None
        self.request = {
            "id": 9001, "status": "published", "share_link": "https://snare.example.com/r/9001",
            "fields_count": 10, "done_fields_count": 4,
        }
        self.sections = [{"status": "complete"}, {"status": "in_progress"}]

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with:
            raise self.fail_with

    def update_client(self, client_id, full_name, email, language_code="en"):
        self._call("update_client", client_id, full_name, email)
        return {"id": client_id, "full_name": full_name}

    def create_client(self, full_name, email, language_code="en"):
        self._call("create_client", full_name, email)
        return {"id": 77, "full_name": full_name}

    def create_request(self, template_id, client_email, client_full_name, name):
        self._call("create_request", template_id, client_email, name)
        return dict(self.request)

    def get_request(self, request_id):
        self._call("get_request", request_id)
        return dict(self.request)

    def get_request_pages(self, request_id):
        return []

    def get_request_sections(self, request_id):
        return self.sections

    def get_client(self, client_id):
        self._call("get_client", client_id)
        return {"id": int(client_id), "full_name": "Taro Yamada", "email": "taro@example.com"}

    def list_templates(self):
        self._call("list_templates")
        return [{"id": "tmpl-1", "name": "Course application"}]

    def list_requests(self, client_id=None, page=1):
        self._call("list_requests", client_id, page)
        return [{"id": 9001, "status": "published"}]


@pytest.fixture
def content_snare(monkeypatch):
    fake = FakeContentSnare()
    monkeypatch.setattr(application_routes, "get_content_snare_client", lambda: fake)
    monkeypatch.setattr(content_snare_routes, "get_content_snare_client", lambda: fake)
    return fake


def content_snare_error(status_code):
    return ContentSnareError("Content Snare APIエラー", status_code=status_code)


INTERVIEW = {
    "id": "post-1",
    "title": "Maple Collegeで学んだ1年",
    "slug": "maple-year",
    "eyecatch": {"url": "https://images.microcms-assets.io/maple.jpg"},
    "college_name": "Maple College",
    "course_name": "Web Development Co-op",
    "categories": [{"name": "interview"}],
    "publishedAt": "2024-05-01T09:00:00.000Z",
}


class FakeCMS:
    def __init__(self):
        self.posts = [INTERVIEW]
        self.queries = []

    def list_posts(self, limit=10, offset=0, q=None, category=None, force_refresh=False):
        self.queries.append({"limit": limit, "offset": offset, "q": q})
        return {"contents": self.posts, "totalCount": len(self.posts), "offset": offset, "limit": limit}

    def get_post(self, slug, force_refresh=False):
        for post in self.posts:
            if post["slug"] == slug:
                return post
        raise CMSError("記事が見つかりません", status_code=404)

    def related_posts(self, school_name=None, course_name=None, limit=3):
        if school_name:
            return [p for p in self.posts if school_name in (p.get("college_name") or "")][:limit]
        return [p for p in self.posts if course_name and course_name in (p.get("course_name") or "")][:limit]


@pytest.fixture
def cms(monkeypatch):
    fake = FakeCMS()
    for module in (course_routes, cms_routes, advisor_service):
        monkeypatch.setattr(module, "get_cms_client", lambda: fake)
    return fake


class FakeAdvisorClient:
    def __init__(self):
        self.calls = []

    def generate_answer(self, query, context, history=None):
        self.calls.append({"query": query, "context": context, "history": history or []})
        return "カナダの学生ビザについてご案内します。"


class FakeMessageStore:
    def __init__(self):
        self.messages = []

    def add(self, session_id, user_id, role, content, sources=None):
        self.messages.append({
            "session_id": session_id, "user_id": user_id, "role": role, "content": content,
            "sources": sources or [], "created_at": "2025-01-01T00:00:00",
        })
        return str(len(self.messages))

    def history(self, session_id, user_id, limit=20):
        rows = [m for m in self.messages if m["session_id"] == session_id and m["user_id"] == user_id]
        return rows[-limit:]


@pytest.fixture
def advisor(monkeypatch):
    fake_client = FakeAdvisorClient()
    store = FakeMessageStore()
    monkeypatch.setattr(advisor_service, "get_advisor_client", lambda: fake_client)
    monkeypatch.setattr(advisor_service, "get_message_store", lambda: store)
    return fake_client, store
