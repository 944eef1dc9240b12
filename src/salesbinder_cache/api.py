"""SalesBinder REST API client for the document indexer."""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests
from loguru import logger

from salesbinder_cache.config import AccountConfig
from salesbinder_cache.exceptions import PaginationExhausted, RateLimited, SourceError
from salesbinder_cache.models.document import DocumentKind
from salesbinder_cache.protocols import DocumentPage

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

USER_AGENT = "salesbinder-cache/0.1.0"


@dataclass(frozen=True)
class RetryConfig:
    """Exponential backoff for throttled and transient failures."""

    max_retries: int = 5
    base_delay: float = 1.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.5  # up to 50% added at random

    def delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-based)."""
        delay = self.base_delay * (self.exponential_base**attempt)
        return delay + delay * self.jitter * random.random()


class SalesBinderApi:
    """Read-only access to SalesBinder documents over HTTP basic auth."""

    def __init__(
        self,
        account: AccountConfig,
        *,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.account = account
        self.base_url = f"https://{account.subdomain}.salesbinder.com/api/{account.api_version}"
        self.retry = retry or RetryConfig()
        self.sess = session or requests.Session()
        self.sess.auth = (account.api_key, "x")
        self.sess.headers.update({"Accept": "application/json", "User-Agent": USER_AGENT})
        self._sleep = sleep

        logger.debug("API ready: {} (account {!r})", self.base_url, account.name)

    def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response:
        """GET with retries; returns the final response whatever its status.

        Raises:
            SourceError: The request failed at the network level on every attempt.
        """
        url = f"{self.base_url}/{path}"
        attempt = 0
        while True:
            try:
                r = self.sess.get(url, params=params, timeout=self.account.timeout)
            except requests.RequestException as e:
                if attempt >= self.retry.max_retries:
                    msg = f"Request to {path} failed: {e}"
                    raise SourceError(msg) from e
                reason = type(e).__name__
            else:
                if r.status_code not in RETRYABLE_STATUS_CODES or attempt >= self.retry.max_retries:
                    return r
                reason = str(r.status_code)

            delay = self.retry.delay(attempt)
            attempt += 1
            logger.warning(
                "Retry {}/{} for {} after {:.0f}ms (reason: {})",
                attempt,
                self.retry.max_retries,
                path,
                delay * 1000,
                reason,
            )
            self._sleep(delay)

    def _json(self, r: requests.Response, path: str) -> dict[str, Any]:
        if r.status_code == 429:
            msg = f"Rate limited on {path}"
            raise RateLimited(msg, status=429)
        if not r.ok:
            msg = f"API call failed: {path} -> HTTP {r.status_code}"
            raise SourceError(msg, status=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            msg = f"Invalid JSON from {path}: {e}"
            raise SourceError(msg, status=r.status_code) from e
        if not isinstance(data, dict):
            msg = f"Unexpected response from {path}: {data!r:.100}"
            raise SourceError(msg, status=r.status_code)
        return data

    def list_documents(
        self,
        kind: DocumentKind,
        *,
        page: int,
        page_size: int,
        modified_since: int | None = None,
    ) -> DocumentPage:
        """Fetch one page of documents of ``kind``.

        Raises:
            PaginationExhausted: ``page`` lies past the last page (HTTP 404).
            RateLimited: Still throttled after all retries.
            SourceError: Any other failure.
        """
        params: dict[str, Any] = {"contextId": int(kind), "page": page, "pageLimit": page_size}
        if modified_since is not None:
            params["modifiedSince"] = modified_since

        r = self._get("documents.json", params)
        if r.status_code == 404:
            msg = f"No {kind.label} page {page}"
            raise PaginationExhausted(msg, status=404)
        data = self._json(r, "documents.json")

        # Documents arrive as a list of lists.
        records: list[dict[str, Any]] = []
        for group in data.get("documents") or []:
            if isinstance(group, list):
                records.extend(doc for doc in group if isinstance(doc, dict))
            elif isinstance(group, dict):
                records.append(group)

        # Without a usable page count, keep going until an empty page or a 404.
        try:
            current = int(data.get("page") or page)
            pages = int(data["pages"])
        except (KeyError, TypeError, ValueError):
            return DocumentPage(records=records, has_more=bool(records))
        return DocumentPage(records=records, has_more=current < pages)

    def get_document(self, document_id: str) -> dict[str, Any]:
        """Fetch a single document including its ``document_items``."""
        path = f"documents/{document_id}.json"
        data = self._json(self._get(path), path)
        document = data.get("document")
        if not isinstance(document, dict):
            msg = f"Invalid API response for document {document_id}"
            raise SourceError(msg)
        return document
