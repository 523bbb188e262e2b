"""Client for the checkup platform's admin REST API."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from checkup_admin.auth import AuthEvents, AuthSession
from checkup_admin.log import get_logger

logger = get_logger(__name__)

REFERENCE_KINDS = ("analyses", "specialists", "diagnostics", "recommendations")
AUTH_RETRY_STATUSES = frozenset({401, 403})
# Time given to auth-error handlers to finish writing before the session clears.
AUTH_ERROR_GRACE_SECONDS = 0.1

GENERIC_ERROR_MESSAGE = "Не удалось выполнить запрос. Попробуйте ещё раз."
ERROR_MESSAGES: Dict[str, str] = {
    "CHECKUP_TEMPLATE_NOT_FOUND": "Шаблон чекапа не найден.",
    "CHECKUP_TEMPLATE_TEST_KEY_EXISTS": "Шаблон с таким ключом теста уже существует.",
    "CHECKUP_TEMPLATE_INVALID_QUESTIONS": "Вопросы шаблона заполнены некорректно.",
    "FILE_TOO_LARGE": "Файл слишком большой.",
    "INVALID_FILE_TYPE": "Неподдерживаемый тип файла.",
    "FORBIDDEN": "Недостаточно прав для выполнения операции.",
}


class ApiError(Exception):
    """Raised when the API answers with an error or cannot be reached."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class SessionExpiredError(ApiError):
    """Raised after a failed token refresh; the user must sign in again."""


def error_message(error: Exception, default: str = GENERIC_ERROR_MESSAGE) -> str:
    """Return the localized message for a known API error code, else ``default``."""

    code = getattr(error, "code", None)
    if code and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]
    return default


def build_http_session() -> requests.Session:
    """Return a ``requests.Session`` retrying idempotent calls on 429/5xx."""

    session = requests.Session()
    retry = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[429, 502, 503, 504],
        allowed_methods=["GET", "PUT", "DELETE"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _error_code(response: requests.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if isinstance(message, list):
        message = message[0] if message else None
    return message if isinstance(message, str) else None


class AdminApiClient:
    """Bearer-authenticated wrapper over the admin endpoints.

    A 401/403 answer triggers exactly one token refresh followed by one retry
    of the original request. When the refresh fails, subscribers of ``events``
    are notified, the session is cleared and :class:`SessionExpiredError` is
    raised.
    """

    def __init__(
        self,
        auth: AuthSession,
        events: Optional[AuthEvents] = None,
        *,
        http: Optional[requests.Session] = None,
        timeout: float = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.auth = auth
        self.events = events if events is not None else AuthEvents()
        self.http = http if http is not None else build_http_session()
        self.timeout = timeout
        self._sleep = sleep

    def _url(self, path: str) -> str:
        return f"{self.auth.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.auth.access_token:
            headers["Authorization"] = f"Bearer {self.auth.access_token}"
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self.http.request(
                method,
                self._url(path),
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Could not reach the API: {exc}") from exc

    def _expire_session(self) -> None:
        logger.warning("Session expired; notifying %d listener(s)", len(self.events))
        self.events.emit()
        self._sleep(AUTH_ERROR_GRACE_SECONDS)
        self.auth.logout()

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body (``None`` when empty)."""

        response = self._send(method, path, **kwargs)
        if response.status_code in AUTH_RETRY_STATUSES:
            if not self.auth.refresh():
                self._expire_session()
                raise SessionExpiredError(
                    "Session expired. Please sign in again.",
                    status=response.status_code,
                    code="session_expired",
                )
            response = self._send(method, path, **kwargs)

        if not response.ok:
            code = _error_code(response)
            logger.error("%s %s returned %s (%s)", method, path, response.status_code, code)
            raise ApiError(
                f"{method} {path} failed with status {response.status_code}",
                status=response.status_code,
                code=code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Checkup templates

    def list_checkup_templates(self, active_only: bool = False) -> List[Dict[str, Any]]:
        path = "/checkup-template/active" if active_only else "/checkup-template"
        return self.request("GET", path) or []

    def get_checkup_template(self, template_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/checkup-template/{template_id}")

    def get_checkup_template_by_key(self, test_key: str) -> Dict[str, Any]:
        return self.request("GET", f"/checkup-template/key/{test_key}")

    def create_checkup_template(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/checkup-template", json=payload)

    def update_checkup_template(self, template_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/checkup-template/{template_id}", json=payload)

    def toggle_checkup_template_active(self, template_id: str) -> Dict[str, Any]:
        return self.request("PATCH", f"/checkup-template/{template_id}/toggle-active")

    def delete_checkup_template(self, template_id: str) -> None:
        self.request("DELETE", f"/checkup-template/{template_id}")

    # Files

    def upload_file(self, filename: str, content: bytes, content_type: str) -> str:
        """Upload ``content`` to S3 through the API and return its public URL."""

        payload = self.request("POST", "/s3/upload", files={"file": (filename, content, content_type)})
        url = (payload or {}).get("url")
        if not url:
            raise ApiError("Upload response did not include a URL.")
        return url

    # Dashboard

    def list_users(self, email: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if email:
            params["email"] = email
        return self.request("GET", "/admin-data/dashboard/users", params=params)

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/admin-data/dashboard/users/{user_id}")

    def get_statistics(self) -> Dict[str, Any]:
        return self.request("GET", "/admin-data/dashboard/statistics") or {}

    # Analyses, specialists, diagnostics and recommendations

    def _reference_path(self, kind: str, item_id: Optional[str] = None) -> str:
        if kind not in REFERENCE_KINDS:
            raise ValueError(f"Unknown reference data kind: {kind}")
        path = f"/admin-data/{kind}"
        return f"{path}/{item_id}" if item_id else path

    def list_reference(self, kind: str, test_type: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"testType": test_type} if test_type else None
        return self.request("GET", self._reference_path(kind), params=params) or []

    def get_reference(self, kind: str, item_id: str) -> Dict[str, Any]:
        return self.request("GET", self._reference_path(kind, item_id))

    def create_reference(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", self._reference_path(kind), json=payload)

    def update_reference(self, kind: str, item_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", self._reference_path(kind, item_id), json=payload)

    def delete_reference(self, kind: str, item_id: str) -> None:
        self.request("DELETE", self._reference_path(kind, item_id))

    # Doctor verification

    def list_doctor_applications(
        self, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return self.request("GET", "/admin-data/doctor-applications", params=params)

    def doctor_application_stats(self) -> Dict[str, Any]:
        return self.request("GET", "/admin-data/doctor-applications/stats") or {}

    def get_doctor_application(self, doctor_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/admin-data/doctor-applications/{doctor_id}")

    def set_doctor_verified(self, doctor_id: str, verified: bool) -> Dict[str, Any]:
        return self.request(
            "PATCH",
            f"/admin-data/doctor-applications/{doctor_id}/status",
            json={"isDoctorVerified": verified},
        )
