import httpx
import logging
from app.config import settings
from app.core.exceptions import ApiRequestError

logger = logging.getLogger(__name__)


class HttpClient:
    _client: httpx.AsyncClient = None

    @classmethod
    def get_client(cls) -> httpx.AsyncClient:
        if cls._client is None or cls._client.is_closed:
            cls._client = httpx.AsyncClient(
                timeout=settings.request_timeout,
                headers={"Content-Type": "application/json"},
            )
        return cls._client

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None and not cls._client.is_closed:
            await cls._client.aclose()
        cls._client = None


def get_http_client() -> httpx.AsyncClient:
    return HttpClient.get_client()


def raise_for_status(response: httpx.Response, action: str) -> None:
    """Raise ApiRequestError("Failed to <action>: <status text>") for non-2xx responses."""
    if response.is_success:
        return
    try:
        detail = response.json()
    except ValueError:
        detail = None
    raise ApiRequestError(
        f"Failed to {action}: {response.reason_phrase}",
        status_code=response.status_code,
        status_text=response.reason_phrase,
        detail=detail,
    )


async def send(client: httpx.AsyncClient, method: str, url: str, action: str, **kwargs) -> httpx.Response:
    """Issue a request, mapping transport failures to ApiRequestError. Status is not checked."""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        logger.error(f"Transport error while trying to {action}: {e}")
        raise ApiRequestError(f"Failed to {action}: {e}", status_code=503, status_text="Service Unavailable")
