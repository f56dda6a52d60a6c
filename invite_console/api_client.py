"""Client for the admin backend's auth and review endpoints."""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from invite_console.config import get_config_value
from invite_console.errors import (
    ApiError,
    ConflictError,
    InvalidCredentialsError,
    NetworkError,
    ServerError,
    UnauthenticatedError,
)
from invite_console.models import Credential

# Only reads are retried; login and decisions are sent exactly once
RETRYABLE_METHODS = frozenset(["GET", "HEAD", "OPTIONS"])


class AdminApiClient:
    """Blocking HTTP client for the admin API. Callers run it in a worker thread."""

    def __init__(
        self,
        base_url: str,
        api_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        login_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        if not base_url:
            self.logger.critical("Missing backend base URL at client initialization.")
            raise ValueError("Missing backend base URL")

        if api_prefix is None:
            api_prefix = get_config_value("backend.api_prefix", "/api/v1/admin")
        prefix = api_prefix.strip("/")
        root = base_url.rstrip("/")
        self.base_url = f"{root}/{prefix}" if prefix else root
        self.timeout = timeout or get_config_value("backend.request_timeout_seconds", 15)
        self.login_timeout = login_timeout or get_config_value(
            "backend.login_timeout_seconds", 10
        )
        self.session = session or requests.Session()
        self._setup_session()

    def _setup_session(self) -> None:
        """Setup the session with default headers and read retries"""
        self.session.headers.update(
            {
                "User-Agent": get_config_value(
                    "backend.user_agent", "Invite Review Console/1.0"
                ),
                "Accept": "application/json",
            }
        )
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=RETRYABLE_METHODS,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.logger.debug("Requests session configured with read retry strategy.")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _log_api_call(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        response: Optional[requests.Response] = None,
    ) -> None:
        """Log API calls in debug mode"""
        if not get_config_value("console_settings.debug_mode", False):
            return

        safe_payload = payload
        if payload and "password" in payload:
            safe_payload = dict(payload, password="***REDACTED***")

        log_data: Dict[str, Any] = {
            "method": method,
            "url": url,
            "payload": safe_payload,
            "status_code": response.status_code if response is not None else None,
            "response_body": None,
        }
        if response is not None:
            if "/auth/" in url:
                # Auth responses carry tokens
                log_data["response_body"] = "(auth response omitted)"
            else:
                log_data["response_body"] = response.text[:1000]

        self.logger.debug(f"Admin API Call: {json.dumps(log_data, indent=2, default=str)}")

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] if response.text else f"HTTP {response.status_code}"
        if isinstance(body, dict):
            for key in ("detail", "message", "error"):
                if body.get(key):
                    detail = body[key]
                    return detail if isinstance(detail, str) else json.dumps(detail)
        return f"HTTP {response.status_code}"

    def _parse(self, response: requests.Response) -> Any:
        """Decode a success body, unwrapping the {success, data} envelope."""
        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise ServerError(
                response.status_code, f"Backend returned a non-JSON body: {str(e)}"
            ) from e
        if isinstance(body, dict) and "success" in body and (
            "data" in body or not body["success"]
        ):
            if not body["success"]:
                raise ApiError(
                    response.status_code,
                    body.get("error") or body.get("message") or "Request failed",
                )
            return body.get("data")
        return body

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = self._error_detail(response)
        if status == 401:
            raise UnauthenticatedError(detail)
        if status == 409:
            raise ConflictError(status, detail)
        if status >= 500:
            raise ServerError(status, detail)
        raise ApiError(status, detail)

    def _request(
        self,
        method: str,
        path: str,
        credential: Optional[Credential] = None,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        check_status: bool = True,
    ) -> requests.Response:
        url = self._url(path)
        headers = {}
        if credential is not None:
            headers["Authorization"] = credential.authorization_header
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=payload,
                params=params,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Timeout calling {method} {url}")
            raise NetworkError(f"request timed out ({method} {path})") from e
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Network error calling {method} {url}: {str(e)}")
            raise NetworkError(str(e)) from e

        self._log_api_call(method, url, payload=payload, response=response)
        if check_status:
            self._raise_for_status(response)
        return response

    # --- Auth endpoints ---

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """POST /auth/login. 4xx means the credentials were refused."""
        self.logger.info(f"Attempting admin login for {email}...")
        response = self._request(
            "POST",
            "/auth/login",
            payload={"email": email, "password": password},
            timeout=self.login_timeout,
            check_status=False,
        )
        status = response.status_code
        if 400 <= status < 500:
            detail = self._error_detail(response)
            self.logger.warning(f"Admin login refused for {email} ({status}): {detail}")
            raise InvalidCredentialsError(status, detail)
        if status >= 500:
            detail = self._error_detail(response)
            self.logger.error(f"Admin login failed with server error {status}: {detail}")
            raise ServerError(status, detail)
        return self._parse(response)

    def refresh(self, credential: Credential) -> Dict[str, Any]:
        """POST /auth/refresh using the current token as bearer."""
        self.logger.debug(f"Refreshing session for {credential.admin.email}")
        return self._parse(
            self._request(
                "POST", "/auth/refresh", credential=credential, timeout=self.login_timeout
            )
        )

    def logout(self, credential: Credential) -> None:
        self._request("POST", "/auth/logout", credential=credential)

    def get_current_admin(self, credential: Credential) -> Dict[str, Any]:
        return self._parse(self._request("GET", "/auth/me", credential=credential))

    # --- Review endpoints ---

    def list_reviews(
        self, credential: Credential, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """GET /reviews with filter and pagination params."""
        self.logger.debug(f"Fetching reviews with params {params}")
        return self._parse(
            self._request("GET", "/reviews", credential=credential, params=params)
        )

    def get_review(self, credential: Credential, review_id: str) -> Dict[str, Any]:
        return self._parse(
            self._request("GET", f"/reviews/{review_id}", credential=credential)
        )

    def decide_review(
        self,
        credential: Credential,
        review_id: str,
        action: str,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST /reviews/{id}/decision. 409 means someone else decided first."""
        payload: Dict[str, Any] = {"action": action}
        if notes:
            payload["notes"] = notes
        if reason:
            payload["reason"] = reason
        self.logger.info(f"Submitting '{action}' for review {review_id}")
        return self._parse(
            self._request(
                "POST",
                f"/reviews/{review_id}/decision",
                credential=credential,
                payload=payload,
            )
        )

    def batch_decide(
        self,
        credential: Credential,
        review_ids: List[str],
        action: str,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"review_ids": list(review_ids), "action": action}
        if notes:
            payload["notes"] = notes
        if reason:
            payload["reason"] = reason
        self.logger.info(f"Submitting batch '{action}' for {len(review_ids)} reviews")
        return self._parse(
            self._request(
                "POST", "/reviews/batch-decision", credential=credential, payload=payload
            )
        )

    def get_dashboard_stats(self, credential: Credential) -> Dict[str, Any]:
        return self._parse(self._request("GET", "/stats", credential=credential))
