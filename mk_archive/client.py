from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

import httpx
from pydantic import SecretStr, TypeAdapter, ValidationError

from .commands import ChannelTimelineRequest, ShowUserRequest, redacted_body, with_credential
from .config_schema import normalize_host
from .errors import DecodeError, TransportError
from .models import DetailedUser, Note
from .run_log import RunLogger

T = TypeVar("T")

OnRequestFn = Callable[[str, dict[str, Any]], None]

_NOTE_PAGE = TypeAdapter(list[Note])
_DETAILED_USER = TypeAdapter(DetailedUser)

_DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "mk-archive",
}


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    text: str


def _error_path(err: ValidationError) -> str | None:
    errors = err.errors()
    if not errors:
        return None
    loc = errors[0].get("loc") or ()
    return ".".join(str(part) for part in loc) or None


def decode_response(response: ApiResponse, adapter: TypeAdapter[T], *, endpoint: str) -> T:
    try:
        return adapter.validate_json(response.text)
    except ValidationError as e:
        raise DecodeError(
            f"Failed to decode response from {endpoint}: {e.error_count()} error(s)",
            status_code=response.status_code,
            body=response.text,
            path=_error_path(e),
        ) from e


class MisskeyClient:
    """
    Minimal authenticated client for a Misskey instance's HTTP API.

    Every call is a POST with a JSON body that carries the API token. No
    retries: any network failure surfaces as TransportError, any unexpected
    body as DecodeError.
    """

    def __init__(
        self,
        host: str,
        token: SecretStr,
        *,
        timeout_seconds: float = 30.0,
        http_client: httpx.Client | None = None,
        on_request: OnRequestFn | None = None,
    ) -> None:
        self._host = normalize_host(host)
        self._token = token
        self._on_request = on_request

        if http_client is not None:
            self._http = http_client
            self._owns_http = False
        else:
            self._http = httpx.Client(
                timeout=httpx.Timeout(float(timeout_seconds)),
                headers=_DEFAULT_HEADERS,
            )
            self._owns_http = True

    @property
    def host(self) -> str:
        return self._host

    def __repr__(self) -> str:
        return f"MisskeyClient(host={self._host!r}, token={self._token!r})"

    def __enter__(self) -> "MisskeyClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def endpoint_url(self, endpoint: str) -> str:
        return f"https://{self._host}/api/{endpoint.strip('/')}"

    def post(self, endpoint: str, body: Mapping[str, Any]) -> ApiResponse:
        url = self.endpoint_url(endpoint)

        if self._on_request is not None:
            self._on_request(url, redacted_body(body, self._token))

        try:
            resp = self._http.post(url, json=with_credential(body, self._token))
            text = resp.text
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {type(e).__name__}: {e}") from e

        return ApiResponse(status_code=resp.status_code, text=text)

    def fetch_channel_timeline(self, request: ChannelTimelineRequest) -> list[Note]:
        endpoint = "channels/timeline"
        response = self.post(endpoint, request.to_body())
        return decode_response(response, _NOTE_PAGE, endpoint=endpoint)

    def show_user(self, request: ShowUserRequest) -> DetailedUser:
        endpoint = "users/show"
        response = self.post(endpoint, request.to_body())
        return decode_response(response, _DETAILED_USER, endpoint=endpoint)


def request_log_hook(logger: RunLogger | None) -> OnRequestFn | None:
    """Log each outgoing request with the token already redacted."""
    if logger is None:
        return None

    def _on_request(url: str, body: dict[str, Any]) -> None:
        logger.info("request_sent", f"POST {url}", url=url, body=body)

    return _on_request
