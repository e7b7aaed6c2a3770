"""
Clients for the small backend proxies used alongside Knack.

- EmailProxy: relays SendGrid-style templated emails
- DashboardProxy: JSON passthrough for dashboard data and AI queries
"""

from __future__ import annotations

import json
from typing import Any

from vespakit.core.config.models import EmailConfig
from vespakit.core.fetch import ApiError, RequestDispatcher, RequestSpec
from vespakit.core.logging import get_logger

logger = get_logger("knack.proxy")


class EmailProxy:
    """Send templated emails through the email relay."""

    def __init__(self, dispatcher: RequestDispatcher, url: str, config: EmailConfig | None = None):
        self.dispatcher = dispatcher
        self.url = url
        self.config = config or EmailConfig()

    def build_payload(
        self,
        to_email: str,
        template_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "personalizations": [
                {
                    "to": [{"email": to_email}],
                    "dynamic_template_data": data,
                }
            ],
            "from": {"email": self.config.from_email, "name": self.config.from_name},
            "template_id": template_id,
        }

    async def send_template(self, to_email: str, template_id: str, data: dict[str, Any]) -> None:
        """Send one templated email.

        Raises:
            ApiError: If the relay rejects the message after retries
        """
        await self.dispatcher.request(
            RequestSpec(
                url=self.url,
                method="POST",
                headers={"Content-Type": "application/json"},
                json_data=self.build_payload(to_email, template_id, data),
            ),
        )
        logger.info("Email sent to %s (template %s)", to_email, template_id)

    async def notify(self, to_email: str, template_id: str | None, data: dict[str, Any]) -> bool:
        """Best-effort send: failures are logged and reported, never raised."""
        if not template_id:
            logger.debug("No template configured; skipping email to %s", to_email)
            return False
        try:
            await self.send_template(to_email, template_id, data)
        except ApiError as e:
            logger.warning(
                "Email to %s failed: %s %s",
                to_email,
                e.status_code or "",
                e.body_excerpt(),
            )
            return False
        return True

    async def send_welcome(self, name: str, email: str, password: str) -> bool:
        """Welcome email for a newly created staff account (best-effort)."""
        first_name = name.split(" ")[0] if name else ""
        return await self.notify(
            email,
            self.config.welcome_template_id,
            {
                "name": first_name,
                "email": email,
                "password": password,
                "loginUrl": self.config.login_url,
            },
        )

    async def send_admin_summary(self, admin_email: str, action: str, details: list[str]) -> bool:
        """Confirmation email to the acting admin (best-effort)."""
        return await self.notify(
            admin_email,
            self.config.admin_template_id,
            {"action": action, "details": "\n".join(details)},
        )


class DashboardProxy:
    """JSON passthrough to the dashboard backend."""

    def __init__(self, dispatcher: RequestDispatcher, base_url: str):
        self.dispatcher = dispatcher
        self.base_url = base_url.rstrip("/")

    async def fetch_records(
        self,
        object_key: str,
        filters: list[dict[str, Any]] | None = None,
        rows_per_page: int | None = None,
        sort_field: str | None = None,
        sort_order: str | None = None,
        cache_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Knack records relayed by the backend (``/api/knack-data``)."""
        params: dict[str, Any] = {
            "objectKey": object_key,
            "filters": json.dumps(filters or []),
        }
        if rows_per_page:
            params["rows_per_page"] = rows_per_page
        if sort_field:
            params["sort_field"] = sort_field
        if sort_order:
            params["sort_order"] = sort_order

        payload = await self.fetch_data("api/knack-data", params=params, cache_key=cache_key)
        records = payload.get("records") if isinstance(payload, dict) else None
        return records if isinstance(records, list) else []

    async def fetch_data(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> Any:
        return await self.dispatcher.request(
            RequestSpec(url=f"{self.base_url}/{path.lstrip('/')}", params=params or {}),
            cache_key=cache_key,
        )

    async def ask(self, question: str, question_data: Any = None) -> str:
        """Forward a natural-language query to the AI chat endpoint."""
        payload = await self.dispatcher.request(
            RequestSpec(
                url=f"{self.base_url}/api/qla-chat",
                method="POST",
                headers={"Content-Type": "application/json"},
                json_data={"query": question, "questionData": question_data},
            ),
        )
        if isinstance(payload, dict):
            return str(payload.get("answer") or "")
        return ""
