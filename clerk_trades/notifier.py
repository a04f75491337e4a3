"""Report rendering and Mailgun delivery."""

from __future__ import annotations

from html import escape
from typing import Protocol, Sequence

import httpx
import structlog

from .config import NotifierSettings
from .errors import NotificationError
from .models import TRADE_COLUMNS, TradeRecord

_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Trades</title>
<style>
table {{ width: 100%; border-collapse: collapse; }}
th, td {{ padding: 8px 12px; border: 1px solid #ddd; text-align: left; }}
th {{ background-color: #f4f4f4; }}
</style>
</head>
<body>
<h1>Trade List</h1>
<table>
<thead>
<tr>{header}</tr>
</thead>
<tbody>
{rows}
</tbody>
</table>
</body>
</html>
"""


class Notifier(Protocol):
    """Capability that delivers a trade report to its recipients."""

    def notify(self, trades: Sequence[TradeRecord]) -> None:
        """Deliver ``trades``; raise NotificationError when delivery fails."""


def render_html_report(trades: Sequence[TradeRecord]) -> str:
    header = "".join(f"<th>{column}</th>" for column in TRADE_COLUMNS)
    rows = "\n".join(
        "<tr>" + "".join(f"<td>{escape(cell)}</td>" for cell in trade.as_row()) + "</tr>"
        for trade in trades
    )
    return _HTML_TEMPLATE.format(header=header, rows=rows)


def render_text_report(trades: Sequence[TradeRecord]) -> str:
    lines = [" | ".join(TRADE_COLUMNS)]
    lines.extend(" | ".join(trade.as_row()) for trade in trades)
    return "\n".join(lines) + "\n"


class MailgunNotifier:
    """Send reports through the Mailgun HTTP API.

    Reports go either to every configured address or, when
    ``use_mailing_list`` is set, to the managed mailing list whose membership
    :meth:`sync_mailing_list` keeps in line with ``email_list``.
    """

    def __init__(
        self,
        settings: NotifierSettings,
        api_key: str,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not settings.domain:
            raise NotificationError("notifier.domain is not configured")
        if not settings.email_list and not settings.use_mailing_list:
            raise NotificationError("notifier.email_list is empty")
        self.settings = settings
        self.logger = logger or structlog.get_logger("clerk_trades.notifier")
        self._client = httpx.Client(
            base_url=settings.api_base,
            auth=("api", api_key),
            timeout=settings.timeout,
            transport=transport,
        )

    @property
    def sender(self) -> str:
        return f"{self.settings.sender_name} <mailgun@{self.settings.domain}>"

    @property
    def recipients(self) -> list[str]:
        if self.settings.use_mailing_list and self.settings.mailing_list:
            return [self.settings.mailing_list]
        return list(self.settings.email_list)

    def close(self) -> None:
        self._client.close()

    def sync_mailing_list(self) -> list[str]:
        """Add configured addresses missing from the mailing list; return them."""

        address = self.settings.mailing_list
        if not self.settings.use_mailing_list or not address:
            return []
        response = self._request("GET", f"/lists/{address}/members")
        members = {
            str(item.get("address", "")).casefold() for item in response.json().get("items", [])
        }
        added: list[str] = []
        for email in self.settings.email_list:
            if email.casefold() in members:
                continue
            self._request(
                "POST",
                f"/lists/{address}/members",
                data={"address": email, "subscribed": "yes"},
            )
            members.add(email.casefold())
            added.append(email)
            self.logger.info("mailing_list_member_added", list=address, email=email)
        return added

    def notify(self, trades: Sequence[TradeRecord]) -> None:
        payload = {
            "from": self.sender,
            "to": self.recipients,
            "subject": self.settings.subject,
            "text": render_text_report(trades),
            "html": render_html_report(trades),
        }
        self._request("POST", f"/{self.settings.domain}/messages", data=payload)
        self.logger.info("report_sent", trades=len(trades), recipients=self.recipients)

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise NotificationError(f"failed to send email: {exc}") from exc
        if not response.is_success:
            raise NotificationError(
                f"mailgun {method} {url} failed: {response.status_code} {response.text[:200]}"
            )
        return response


__all__ = ["MailgunNotifier", "Notifier", "render_html_report", "render_text_report"]
