"""
Knack REST API client.

Thin record-level API over the request dispatcher: every call is
throttled per Knack object, retried with backoff, and optionally
cached.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from vespakit.core.config.models import AppConfig, FilterMatch, KnackConfig
from vespakit.core.fetch import RequestContext, RequestDispatcher, RequestSpec
from vespakit.core.logging import get_logger

logger = get_logger("knack.client")


@dataclass
class FilterRule:
    """One Knack filter rule."""

    field: str
    operator: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass
class KnackFilter:
    """A Knack filter: rules combined with ``and`` or ``or``."""

    rules: list[FilterRule] = field(default_factory=list)
    match: FilterMatch = FilterMatch.AND

    @classmethod
    def any_of(cls, *rules: FilterRule) -> "KnackFilter":
        return cls(rules=list(rules), match=FilterMatch.OR)

    @classmethod
    def all_of(cls, *rules: FilterRule) -> "KnackFilter":
        return cls(rules=list(rules), match=FilterMatch.AND)

    def to_dict(self) -> dict[str, Any]:
        return {"match": self.match.value, "rules": [r.to_dict() for r in self.rules]}

    def to_param(self) -> str:
        """JSON text for the ``filters`` query parameter (httpx URL-encodes it)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


class KnackClient:
    """Record-level access to the Knack REST API."""

    def __init__(self, config: KnackConfig, dispatcher: RequestDispatcher):
        self.config = config
        self.dispatcher = dispatcher

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        context: RequestContext | None = None,
        **dispatcher_kwargs: Any,
    ) -> "KnackClient":
        dispatcher = RequestDispatcher.from_config(config, context=context, **dispatcher_kwargs)
        return cls(config.knack, dispatcher)

    def headers(self) -> dict[str, str]:
        """Standard Knack API headers."""
        if not self.config.user_token:
            logger.debug("No Knack user token configured; Authorization header is empty")
        return {
            "X-Knack-Application-Id": self.config.app_id,
            "X-Knack-REST-API-Key": self.config.api_key,
            "Authorization": self.config.user_token or "",
            "Content-Type": "application/json",
        }

    def records_url(self, object_key: str, record_id: str | None = None) -> str:
        url = f"{self.config.api_url}/objects/{object_key}/records"
        if record_id:
            url = f"{url}/{record_id}"
        return url

    def _spec(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> RequestSpec:
        return RequestSpec(
            url=url,
            method=method,
            headers=self.headers(),
            params=params or {},
            json_data=json_data,
        )

    async def get_record(
        self,
        object_key: str,
        record_id: str,
        cache_key: str | None = None,
        request_key: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch one record in raw format. Returns None if the body has no id.

        Only records that were found are cached.
        """
        cache = self.dispatcher.cache
        if cache_key:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        payload = await self.dispatcher.request(
            self._spec("GET", self.records_url(object_key, record_id), params={"format": "raw"}),
            resource=object_key,
            request_key=request_key,
        )
        if not (isinstance(payload, dict) and payload.get("id")):
            return None
        if cache_key:
            cache.set(cache_key, payload)
        return payload

    async def find_records(
        self,
        object_key: str,
        filters: KnackFilter | None = None,
        rows_per_page: int | None = None,
        page: int | None = None,
        cache_key: str | None = None,
        request_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """List records matching ``filters``. Unexpected bodies yield [].

        Empty results are not cached.
        """
        cache = self.dispatcher.cache
        if cache_key:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        params: dict[str, Any] = {"format": "raw"}
        if filters is not None:
            params["filters"] = filters.to_param()
        if rows_per_page:
            params["rows_per_page"] = rows_per_page
        if page:
            params["page"] = page

        payload = await self.dispatcher.request(
            self._spec("GET", self.records_url(object_key), params=params),
            resource=object_key,
            request_key=request_key,
        )
        records = payload.get("records") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            return []
        records = [r for r in records if isinstance(r, dict)]
        if cache_key and records:
            cache.set(cache_key, records)
        return records

    async def find_first(
        self,
        object_key: str,
        filters: KnackFilter,
        cache_key: str | None = None,
        request_key: str | None = None,
    ) -> dict[str, Any] | None:
        records = await self.find_records(
            object_key,
            filters,
            cache_key=cache_key,
            request_key=request_key,
        )
        return records[0] if records else None

    async def create_record(self, object_key: str, data: dict[str, Any]) -> dict[str, Any]:
        payload = await self.dispatcher.request(
            self._spec("POST", self.records_url(object_key), json_data=data),
            resource=object_key,
        )
        return payload if isinstance(payload, dict) else {}

    async def update_record(
        self,
        object_key: str,
        record_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        payload = await self.dispatcher.request(
            self._spec("PUT", self.records_url(object_key, record_id), json_data=data),
            resource=object_key,
        )
        return payload if isinstance(payload, dict) else {}

    async def delete_record(self, object_key: str, record_id: str) -> bool:
        payload = await self.dispatcher.request(
            self._spec("DELETE", self.records_url(object_key, record_id)),
            resource=object_key,
        )
        if isinstance(payload, dict) and "delete" in payload:
            return bool(payload["delete"])
        return True

    async def close(self) -> None:
        await self.dispatcher.close()

    async def __aenter__(self) -> "KnackClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
