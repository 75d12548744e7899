"""
Advisor Service - question answering over the portal's own data.

Flow for one question:
1. Pull keywords out of the question
2. Collect context: matching visa types, matching courses (with subjects
   when the question asks for details) and related interview articles
3. Send context + the last few messages of the session to the chat model
4. Store both sides of the exchange in MongoDB

The model only phrases the answer. Catalogue data in the relational
database stays the source of truth.
"""

import logging
import time
from typing import List, Optional, Tuple

from openai import OpenAI, OpenAIError
from pymongo.errors import PyMongoError

from frog_portal.core.config import get_settings
from frog_portal.db.postgres import execute_raw_sql
from frog_portal.services.cms_client import CMSError, get_cms_client
from frog_portal.services.mongo_service import AdvisorMessageService

logger = logging.getLogger(__name__)

settings = get_settings()

HISTORY_TURNS = 5
MAX_CONTEXT_COURSES = 10

IMPORTANT_KEYWORDS = [
    "エンジニア", "プログラマー", "デベロッパー", "デザイナー", "開発者", "IT", "テック", "テクノロジー",
    "カナダ", "バンクーバー", "トロント", "カルガリー", "モントリオール", "オタワ",
    "就職", "仕事", "ジョブ", "転職", "キャリア", "働く", "勤務",
    "ビザ", "ワーホリ", "ワーキングホリデー", "永住権", "PR", "学生ビザ",
    "Frog", "フロッグ", "インタビュー", "体験談",
    "コース", "プログラム", "カリキュラム", "学校", "カレッジ", "大学", "留学",
]

VISA_TRIGGERS = ["ビザ", "visa", "ワーホリ", "ワーキングホリデー", "永住権", "permit"]
COURSE_TRIGGERS = ["コース", "course", "プログラム", "カリキュラム", "学校", "カレッジ", "留学"]
JOB_TRIGGERS = ["就職", "仕事", "ジョブ", "転職", "キャリア", "働く", "インタビュー", "体験談", "job", "career"]
DETAIL_TRIGGERS = [
    "詳細", "詳しく", "科目", "カリキュラム", "内容", "subject", "curriculum", "detail",
    "何を学ぶ", "何を勉強", "授業内容", "授業科目",
]

SYSTEM_PROMPT = """あなたはFrog Membersのカナダビザ・留学・海外就職に関するAIアシスタントです。
ユーザーの質問に対して、提供されたコンテキスト情報を元に回答してください。

1. 提供されたコンテキスト情報のみを使用して回答してください。
2. コンテキスト情報に含まれていない場合は、「その情報は持ち合わせていません」と正直に伝えてください。
3. 回答は日本語で、丁寧かつ親しみやすい口調で行ってください。
4. 回答は簡潔に、かつ具体的な情報を含めるようにしてください。

回答の最後には、必要に応じて以下のいずれかを追加してください：
- ビザに関する質問：「より詳しいビザ情報は、カナダ政府の公式サイトでご確認ください。」
- コースに関する質問：「コースの詳細や最新情報は、各学校の公式サイトでご確認ください。」
- 就職に関する質問：「就職活動のサポートが必要な場合は、Frogのキャリアアドバイザーにご相談ください。」"""

FALLBACK_ANSWER = "申し訳ありませんが、回答を生成できませんでした。"
ERROR_ANSWER = "申し訳ありませんが、回答の生成中にエラーが発生しました。しばらく経ってからもう一度お試しください。"


# ============================================================
# KEYWORDS
# ============================================================

def _contains_any(text: str, triggers: List[str]) -> bool:
    lowered = text.lower()
    return any(t.lower() in lowered for t in triggers)


def extract_keywords(query: str) -> List[str]:
    """Known domain words found in the query plus up to three other words of 3+ characters."""
    lowered = query.lower()
    found = [k for k in IMPORTANT_KEYWORDS if k.lower() in lowered]
    known = {k.lower() for k in found}
    general = [w for w in lowered.split() if len(w) >= 3 and w not in known]
    return found + general[:3]


def needs_detail(query: str) -> bool:
    return _contains_any(query, DETAIL_TRIGGERS)


# ============================================================
# CONTEXT
# ============================================================

def _like_clause(columns: List[str], keywords: List[str]) -> Tuple[str, dict]:
    clauses, params = [], {}
    for i, keyword in enumerate(keywords):
        params[f"k{i}"] = f"%{keyword.lower()}%"
        clauses.extend(f"LOWER(COALESCE({col}, '')) LIKE :k{i}" for col in columns)
    return " OR ".join(clauses), params


def search_visa_types(keywords: List[str]) -> List[dict]:
    """Visa types matching any keyword; all of them when nothing matches."""
    if keywords:
        where, params = _like_clause(["name", "description"], keywords)
        rows = execute_raw_sql(
            f"SELECT visa_type_id, name, description, country FROM visa_types WHERE {where} ORDER BY name LIMIT 10",
            params
        )
        if rows:
            return rows
    return execute_raw_sql("SELECT visa_type_id, name, description, country FROM visa_types ORDER BY name")


def search_courses(keywords: List[str], with_subjects: bool = False) -> List[dict]:
    """Courses matching any keyword in name, description or category; all courses when none match."""
    sql = """
        SELECT c.course_id, c.name, c.category, c.description, c.total_weeks, c.tuition_and_others,
               s.name AS school_name, gl.city, gl.country
        FROM courses c
        JOIN schools s ON c.school_id = s.school_id
        LEFT JOIN goal_locations gl ON s.goal_location_id = gl.location_id
    """
    order = f" ORDER BY c.name LIMIT {MAX_CONTEXT_COURSES}"
    courses = []
    if keywords:
        where, params = _like_clause(["c.name", "c.description", "c.category"], keywords)
        courses = execute_raw_sql(sql + f" WHERE {where}" + order, params)
    if not courses:
        courses = execute_raw_sql(sql + order)

    if with_subjects:
        for course in courses:
            course["subjects"] = execute_raw_sql(
                "SELECT title, description FROM course_subjects WHERE course_id = :cid ORDER BY subject_id",
                {"cid": course["course_id"]}
            )
    return courses


def search_interviews(query: str, limit: int = 5) -> List[dict]:
    """Interview articles matching the query; CMS trouble just means no articles."""
    try:
        data = get_cms_client().list_posts(limit=limit, q=query)
    except CMSError as e:
        logger.warning("Interview search failed: %s", e)
        return []
    return data.get("contents", [])


def format_visa(visa: dict) -> str:
    return f"【ビザ情報】\nタイプ: {visa['name']}\n説明: {visa.get('description') or '情報なし'}\n国: {visa.get('country') or '情報なし'}"


def format_course(course: dict) -> str:
    location = "、".join(v for v in [course.get("city"), course.get("country")] if v) or "情報なし"
    lines = [
        "【コース情報】",
        f"学校: {course.get('school_name') or '情報なし'}",
        f"コース: {course['name']}",
        f"カテゴリ: {course.get('category') or '情報なし'}",
        f"場所: {location}",
        f"期間: {course['total_weeks']}週間" if course.get("total_weeks") else "期間: 情報なし",
        f"学費: {course.get('tuition_and_others') or '情報なし'}",
    ]
    if course.get("description"):
        lines.append(f"説明: {course['description']}")
    subjects = course.get("subjects") or []
    if subjects:
        lines.append("科目: " + "、".join(s["title"] for s in subjects))
    return "\n".join(lines)


def format_interview(post: dict) -> str:
    lines = ["【インタビュー記事】", f"タイトル: {post.get('title', '')}"]
    if post.get("college_name"):
        lines.append(f"学校: {post['college_name']}")
    if post.get("course_name"):
        lines.append(f"コース: {post['course_name']}")
    return "\n".join(lines)


def build_context(query: str) -> Tuple[List[str], List[str]]:
    """
    Context blocks for the model and the source labels returned to the user.

    Visa types are included for visa questions, courses for course questions
    (or when no topic is recognised), interviews for job questions.
    """
    keywords = extract_keywords(query)
    context: List[str] = []
    sources: List[str] = []

    is_visa = _contains_any(query, VISA_TRIGGERS)
    is_course = _contains_any(query, COURSE_TRIGGERS)
    is_job = _contains_any(query, JOB_TRIGGERS)

    if is_visa:
        for visa in search_visa_types(keywords):
            context.append(format_visa(visa))
            sources.append(f"visa:{visa['name']}")

    if is_course or not (is_visa or is_job):
        for course in search_courses([k for k in keywords if k not in ("コース", "course")], needs_detail(query)):
            context.append(format_course(course))
            sources.append(f"course:{course['name']}")

    if is_job:
        for post in search_interviews(query):
            context.append(format_interview(post))
            sources.append(f"interview:{post.get('title', '')}")

    return context, sources


# ============================================================
# MODEL CLIENT
# ============================================================

class AdvisorClient:
    """
    Wrapper for the OpenAI-compatible chat API.
    """

    def __init__(self):
        self.client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url
        )
        self.model = settings.openai_model

    def _call_api(self, messages: List[dict], max_tokens: int = 1000) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=0.7,
            top_p=0.9,
            frequency_penalty=0.5,
            presence_penalty=0.5,
        )
        return response.choices[0].message.content

    def generate_answer(self, query: str, context: List[str], history: Optional[List[dict]] = None) -> str:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        for message in (history or [])[-HISTORY_TURNS:]:
            messages.append({"role": message["role"], "content": message["content"]})
        messages.append({
            "role": "user",
            "content": f"質問: {query}\n\nコンテキスト情報:\n" + "\n\n".join(context),
        })

        try:
            answer = self._call_api(messages)
        except OpenAIError as e:
            logger.error("Advisor completion failed: %s", e)
            return ERROR_ANSWER
        return answer or FALLBACK_ANSWER

    def test_connection(self) -> bool:
        """Check the chat API answers at all."""
        try:
            response = self._call_api(
                [{"role": "system", "content": "You are a test assistant."},
                 {"role": "user", "content": "Reply with exactly: OK"}],
                max_tokens=10
            )
        except OpenAIError as e:
            logger.error("Advisor connection failed: %s", e)
            return False
        return "OK" in (response or "").upper()


# Singleton instance
_advisor_client: AdvisorClient = None


def get_advisor_client() -> AdvisorClient:
    """Get or create advisor client (singleton pattern)"""
    global _advisor_client
    if _advisor_client is None:
        _advisor_client = AdvisorClient()
    return _advisor_client


def get_message_store() -> AdvisorMessageService:
    return AdvisorMessageService()


# ============================================================
# CONVERSATION
# ============================================================

def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


def answer_question(user_id: int, query: str, session_id: Optional[str] = None) -> dict:
    """
    Answer one question within a session and persist the exchange.

    History is read before the new question is stored. A MongoDB outage
    degrades to a stateless answer.
    """
    session_id = session_id or new_session_id()
    store = get_message_store()

    history: List[dict] = []
    try:
        history = store.history(session_id, user_id)
        store.add(session_id, user_id, "user", query)
    except PyMongoError as e:
        logger.warning("Advisor history unavailable for %s: %s", session_id, e)

    context, sources = build_context(query)
    answer = get_advisor_client().generate_answer(query, context, history)

    try:
        store.add(session_id, user_id, "assistant", answer, sources)
    except PyMongoError as e:
        logger.warning("Could not store advisor answer for %s: %s", session_id, e)

    return {"session_id": session_id, "answer": answer, "sources": sources}


def session_messages(user_id: int, session_id: str) -> List[dict]:
    return get_message_store().history(session_id, user_id, limit=100)

