"""
Content Snare API Client

Content Snare is the third-party form service applicants fill in after they
apply for a course. The portal creates one "request" per application and
polls it for status and completion.

AUTH:
- OAuth refresh-token grant against the token endpoint
- The refresh token lives in the refresh_tokens table (service_name
  'content_snare'); rotated tokens are written back
- Access tokens are cached in-process until shortly before they expire
- A 401 from the API forces a refresh and the call is retried (max 2 retries)
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, List

import requests
from sqlalchemy import text

from frog_portal.core.config import get_settings
from frog_portal.db.postgres import get_db_session

logger = logging.getLogger(__name__)

settings = get_settings()

SERVICE_NAME = "content_snare"
DEFAULT_EXPIRES_IN = 3600
EXPIRY_MARGIN_SECONDS = 300
MAX_RETRIES = 2


class ContentSnareError(Exception):
    """Raised when Content Snare rejects a call or cannot be reached."""

    def __init__(self, message: str, status_code: int = 502, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class RefreshTokenStore:
    """Reads and rotates the shared refresh token row."""

    def load(self) -> Optional[dict]:
        with get_db_session() as db:
            row = db.execute(
                text("""
                    SELECT token_id, refresh_token FROM refresh_tokens
                    WHERE service_name = :service
                    ORDER BY created_at DESC, token_id DESC
                    LIMIT 1
                """),
                {"service": SERVICE_NAME}
            ).fetchone()
        if not row:
            return None
        return {"token_id": row[0], "refresh_token": row[1]}

    def save(self, token_id: Optional[int], refresh_token: str) -> None:
        with get_db_session() as db:
            if token_id is None:
                db.execute(
                    text("INSERT INTO refresh_tokens (service_name, refresh_token) VALUES (:service, :token)"),
                    {"service": SERVICE_NAME, "token": refresh_token}
                )
            else:
                db.execute(
                    text("UPDATE refresh_tokens SET refresh_token = :token WHERE token_id = :id"),
                    {"token": refresh_token, "id": token_id}
                )


class ContentSnareClient:
    """
    Thin wrapper over the partner API.

    All public methods return decoded JSON and raise ContentSnareError on
    failure.
    """

    def __init__(self, session: Optional[requests.Session] = None, token_store: Optional[RefreshTokenStore] = None):
        self.session = session or requests.Session()
        self.token_store = token_store or RefreshTokenStore()
        self.base_url = settings.content_snare_base_url.rstrip("/")
        self.token_url = settings.content_snare_token_url
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    # ------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------

    def get_access_token(self, force_refresh: bool = False) -> str:
        if not force_refresh and self._access_token and self._expires_at and datetime.utcnow() < self._expires_at:
            return self._access_token

        stored = self.token_store.load()
        if not stored:
            raise ContentSnareError("Content Snareのリフレッシュトークンが登録されていません", status_code=500)

        try:
            response = self.session.post(
                self.token_url,
                json={
                    "grant_type": "refresh_token",
                    "client_id": settings.content_snare_client_id,
                    "client_secret": settings.content_snare_client_secret,
                    "refresh_token": stored["refresh_token"],
                },
                timeout=15,
            )
        except requests.RequestException as e:
            raise ContentSnareError(f"トークンのリフレッシュに失敗: {e}") from e

        if not response.ok:
            raise ContentSnareError(
                "トークンのリフレッシュに失敗", status_code=response.status_code, details=response.text
            )

        data = response.json()
        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
        self._access_token = data["access_token"]
        self._expires_at = datetime.utcnow() + timedelta(seconds=expires_in - EXPIRY_MARGIN_SECONDS)

        if data.get("refresh_token"):
            self.token_store.save(stored["token_id"], data["refresh_token"])
            logger.info("Content Snare refresh token rotated")

        return self._access_token

    # ------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------

    def request(self, method: str, endpoint: str, json: Optional[dict] = None, params: Optional[dict] = None):
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        attempt = 0

        while True:
            token = self.get_access_token(force_refresh=attempt > 0)
            try:
                response = self.session.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                    timeout=30,
                )
            except requests.RequestException as e:
                raise ContentSnareError(f"Content Snare APIに接続できません: {e}") from e

            if response.status_code == 401 and attempt < MAX_RETRIES:
                attempt += 1
                logger.info("Content Snare returned 401, refreshing token (retry %d)", attempt)
                continue
            break

        if not response.ok:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            logger.error("Content Snare %s %s failed: %s %s", method, endpoint, response.status_code, details)
            raise ContentSnareError("Content Snare APIエラー", status_code=response.status_code, details=details)

        if not response.content:
            return {}
        return response.json()

    # ------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------

    def get_client(self, client_id: str) -> dict:
        return self.request("GET", f"clients/{client_id}")

    def update_client(self, client_id: str, full_name: str, email: str, language_code: str = "en") -> dict:
        return self.request("PUT", f"clients/{client_id}", json={
            "full_name": full_name,
            "email": email,
            "language_code": language_code,
        })

    def find_client_by_email(self, email: str) -> Optional[dict]:
        data = self.request("GET", "clients", params={"email": email})
        clients = data.get("data", data) if isinstance(data, dict) else data
        return clients[0] if clients else None

    def create_client(self, full_name: str, email: str, language_code: str = "en") -> dict:
        """Create a client, reusing an existing one with the same email."""
        existing = self.find_client_by_email(email)
        if existing:
            return existing
        return self.request("POST", "clients", json={
            "full_name": full_name,
            "email": email,
            "language_code": language_code,
        })

    # ------------------------------------------------------------
    # Requests (forms)
    # ------------------------------------------------------------

    def create_request(self, template_id: str, client_email: str, client_full_name: str, name: str) -> dict:
        return self.request("POST", "requests", json={
            "request_template_id": template_id,
            "client_email": client_email,
            "client_full_name": client_full_name,
            "name": name,
            "comments_enabled": True,
            "share_via_link_enabled": True,
            "status": "published",
        })

    def get_request(self, request_id: str) -> dict:
        return self.request("GET", f"requests/{request_id}")

    def list_requests(self, client_id: Optional[str] = None, page: int = 1) -> List[dict]:
        params = {"page": page}
        if client_id:
            params["client_id"] = client_id
        data = self.request("GET", "requests", params=params)
        return data.get("data", []) if isinstance(data, dict) else data

    def get_request_pages(self, request_id: str) -> List[dict]:
        data = self.request("GET", f"requests/{request_id}/pages")
        return data.get("data", []) if isinstance(data, dict) else data

    def get_request_sections(self, request_id: str) -> List[dict]:
        data = self.request("GET", f"requests/{request_id}/sections")
        return data.get("data", []) if isinstance(data, dict) else data

    def list_templates(self) -> List[dict]:
        data = self.request("GET", "request_templates")
        return data.get("data", []) if isinstance(data, dict) else data


# Singleton instance
_content_snare_client: ContentSnareClient = None


def get_content_snare_client() -> ContentSnareClient:
    """Get or create Content Snare client (singleton pattern)"""
    global _content_snare_client
    if _content_snare_client is None:
        _content_snare_client = ContentSnareClient()
    return _content_snare_client
