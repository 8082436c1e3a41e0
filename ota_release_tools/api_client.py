import json
from dataclasses import dataclass, field

import cloudscraper
import requests
from cloudscraper.exceptions import CaptchaException, CloudflareException

from .config import REQUEST_TIMEOUT
from .exceptions import NetworkOrParseFailure


@dataclass
class ApiResponse:
    """A cloud-function reply: HTTP status plus the {code, message, ...} envelope."""

    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def http_ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def succeeded(self) -> bool:
        return self.http_ok and self.body.get("code") == 0

    @property
    def message(self) -> str:
        return self.body.get("message") or "Unknown error"

    @property
    def data(self):
        return self.body.get("data")

    def preview(self, limit: int = 200) -> str:
        text = json.dumps(self.body, indent=2, ensure_ascii=False)
        return text if len(text) <= limit else text[:limit] + "..."


class ApiClient:
    """Sends single JSON requests to the cloud-function gateway; no retries."""

    def __init__(self, base_url: str, api_key: str, timeout: float = REQUEST_TIMEOUT, scraper=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.scraper = scraper if scraper is not None else cloudscraper.create_scraper()

    def headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, body: dict | None = None) -> ApiResponse:
        kwargs = {"headers": self.headers(), "timeout": self.timeout}
        if body is not None:
            kwargs["data"] = json.dumps(body, ensure_ascii=False).encode("utf-8")
        try:
            response = self.scraper.request(method, self.url(path), **kwargs)
        except requests.Timeout as e:
            raise NetworkOrParseFailure(f"Request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise NetworkOrParseFailure(f"Request failed: {e}") from e
        except (CloudflareException, CaptchaException) as e:
            raise NetworkOrParseFailure(f"Request blocked by Cloudflare: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            snippet = (response.text or "")[:200]
            raise NetworkOrParseFailure(
                f"Could not parse response (HTTP {response.status_code}): {snippet!r}"
            ) from e
        if not isinstance(payload, dict):
            raise NetworkOrParseFailure(f"Response is not a JSON object (HTTP {response.status_code})")
        return ApiResponse(status_code=response.status_code, body=payload)

    def get(self, path: str) -> ApiResponse:
        return self.request("GET", path)

    def post(self, path: str, body: dict) -> ApiResponse:
        return self.request("POST", path, body)
