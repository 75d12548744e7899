from types import SimpleNamespace

import pytest
from openai import OpenAIError
from pymongo.errors import ServerSelectionTimeoutError

from frog_portal.services import advisor_service
from frog_portal.services.advisor_service import (
    AdvisorClient, ERROR_ANSWER, FALLBACK_ANSWER, build_context, extract_keywords, needs_detail
)


class TestKeywords:
    def test_domain_words_first(self):
        keywords = extract_keywords("バンクーバーで働くには? engineer visa")
        assert keywords[:2] == ["バンクーバー", "働く"]
        assert "engineer" in keywords and "visa" in keywords

    def test_short_words_dropped(self):
        assert extract_keywords("an it job") == ["IT", "job"]

    def test_detail_questions(self):
        assert needs_detail("授業内容を詳しく")
        assert not needs_detail("学費はいくら?")


class TestContext:
    def test_visa_question(self, catalogue):
        context, sources = build_context("学生ビザについて教えて")
        assert sources == ["visa:Study Permit"]
        assert "タイプ: Study Permit" in context[0]

    def test_course_details_include_subjects(self, catalogue):
        context, sources = build_context("web developmentの科目を詳しく教えて")
        assert sources == ["course:Web Development Co-op"]
        assert "科目: JavaScript" in context[0]
        assert "学費: CA$18,500" in context[0]

    def test_unrecognised_topic_lists_courses(self, catalogue):
        _, sources = build_context("hello")
        assert sources == ["course:Business English", "course:Culinary Arts", "course:Web Development Co-op"]

    def test_job_question_uses_interviews(self, catalogue, cms):
        _, sources = build_context("カナダでの就職体験談")
        assert sources == ["interview:Maple Collegeで学んだ1年"]


class TestConversation:
    def test_answer_is_stored_with_history(self, client, user, catalogue, cms, advisor):
        fake_client, store = advisor
        first = client.post("/api/advisor/messages", headers=user["headers"], json={"query": "学生ビザについて"}).json()
        assert first["answer"] == "カナダの学生ビザについてご案内します。"
        assert first["session_id"].startswith("session_")

        client.post("/api/advisor/messages", headers=user["headers"],
                    json={"query": "期間は?", "session_id": first["session_id"]})
        assert [m["role"] for m in fake_client.calls[1]["history"]] == ["user", "assistant"]

        messages = client.get(f"/api/advisor/sessions/{first['session_id']}", headers=user["headers"]).json()
        assert [m["content"] for m in messages][:2] == ["学生ビザについて", "カナダの学生ビザについてご案内します。"]
        assert len(messages) == 4

    def test_sessions_are_per_user(self, client, user, other_user, catalogue, advisor):
        session = client.post("/api/advisor/messages", headers=user["headers"], json={"query": "hello"}).json()
        other = client.get(f"/api/advisor/sessions/{session['session_id']}", headers=other_user["headers"])
        assert other.json() == []

    def test_empty_question(self, client, user, advisor):
        response = client.post("/api/advisor/messages", headers=user["headers"], json={"query": "   "})
        assert response.status_code == 400

    def test_mongo_outage_still_answers(self, client, user, catalogue, advisor, monkeypatch):
        _, store = advisor

        def down(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers")

        monkeypatch.setattr(store, "history", down)
        monkeypatch.setattr(store, "add", down)
        response = client.post("/api/advisor/messages", headers=user["headers"], json={"query": "hello"})
        assert response.status_code == 200
        assert client.get("/api/advisor/sessions/session_1", headers=user["headers"]).status_code == 503


def fake_completions(reply=None, error=None):
    def create(**kwargs):
        if error:
            raise error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    advisor = AdvisorClient.__new__(AdvisorClient)
    advisor.model = "test-model"
    advisor.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return advisor


@pytest.mark.parametrize("reply, error, expected", [
    ("回答です", None, "回答です"),
    (None, None, FALLBACK_ANSWER),
    (None, OpenAIError("rate limited"), ERROR_ANSWER),
])
def test_generate_answer(reply, error, expected):
    assert fake_completions(reply, error).generate_answer("質問", ["context"]) == expected


def test_connection_check():
    assert fake_completions("ok").test_connection() is True
    assert fake_completions(error=OpenAIError("down")).test_connection() is False


def test_history_is_trimmed():
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))])

    advisor = fake_completions()
    advisor.client.chat.completions.create = create
    history = [{"role": "user", "content": str(i)} for i in range(8)]
    advisor.generate_answer("質問", [], history)
    contents = [m["content"] for m in seen["messages"]]
    assert contents[1:-1] == ["3", "4", "5", "6", "7"]
    assert seen["messages"][0]["content"] == advisor_service.SYSTEM_PROMPT
