"""Client utilities for the Kakao Local keyword search API."""

import logging
import time
from typing import Any, Dict, Optional

import requests

from poi_collector.models import SearchPage

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://dapi.kakao.com/v2/local"
PAGE_SIZE = 15


class KakaoApiError(RuntimeError):
    """Raised when the Kakao API returns a non-successful response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(KakaoApiError):
    """Raised on HTTP 429 so callers can back off and retry."""


class RetryExhaustedError(KakaoApiError):
    """Raised when a rate-limited call still fails after every retry."""


def keyword_search(
    keyword: str,
    lng: float,
    lat: float,
    radius_m: int,
    page: int,
    api_key: str,
) -> SearchPage:
    params = {
        "query": keyword,
        "x": lng,
        "y": lat,
        "radius": int(radius_m),
        "page": page,
        "size": PAGE_SIZE,
    }
    headers = {"Authorization": f"KakaoAK {api_key}"}
    try:
        response = _SESSION.get(f"{_BASE_URL}/search/keyword.json", params=params, headers=headers, timeout=10)
    except requests.RequestException as exc:
        raise KakaoApiError(f"Kakao API request failed: {exc}") from exc

    if response.status_code == 429:
        raise RateLimitError("Kakao API rate limit exceeded", status_code=429, body=response.text)
    if response.status_code >= 400:
        logger.error("keyword_search failed: status=%s body=%s", response.status_code, response.text[:300])
        raise KakaoApiError(
            f"Kakao API Error: {response.status_code}",
            status_code=response.status_code,
            body=response.text,
        )

    return parse_search_page(response.json())


def parse_search_page(payload: Dict[str, Any]) -> SearchPage:
    meta = payload.get("meta") or {}
    documents = payload.get("documents") or []
    return SearchPage(
        items=[doc for doc in documents if isinstance(doc, dict)],
        total_count=int(meta.get("total_count") or 0),
        pageable_count=int(meta.get("pageable_count") or 0),
        is_last_page=bool(meta.get("is_end", True)),
    )


def keyword_search_with_retry(
    keyword: str,
    lng: float,
    lat: float,
    radius_m: int,
    page: int,
    api_key: str,
    *,
    call_delay_ms: int = 30,
    max_retries: int = 5,
    retry_delay_ms: int = 1000,
    max_retry_delay_ms: int = 60000,
) -> SearchPage:
    """Call ``keyword_search`` with a fixed throttle and 429 backoff.

    Every attempt waits ``call_delay_ms`` first. A rate-limited attempt then
    waits ``retry_delay_ms * 2 ** (attempt - 1)`` (capped) before the next one.
    Any other error is raised straight away.
    """
    for attempt in range(1, max_retries + 1):
        time.sleep(call_delay_ms / 1000.0)
        try:
            return keyword_search(keyword, lng, lat, radius_m, page, api_key)
        except RateLimitError:
            logger.warning(
                "Kakao API rate limited (attempt %s/%s) for keyword=%s page=%s",
                attempt,
                max_retries,
                keyword,
                page,
            )
            if attempt == max_retries:
                break
            backoff_ms = min(retry_delay_ms * 2 ** (attempt - 1), max_retry_delay_ms)
            logger.warning("Waiting %sms before retrying", backoff_ms)
            time.sleep(backoff_ms / 1000.0)

    raise RetryExhaustedError(
        f"Kakao API retries exhausted for keyword={keyword} page={page}",
        status_code=429,
    )
