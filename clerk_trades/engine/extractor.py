"""Turning raw report bytes into trade records through a generative model."""

from __future__ import annotations

import base64
import json
import re
from typing import Any, Protocol, Sequence

import httpx
import structlog
from pydantic import ValidationError

from ..config import ExtractorSettings
from ..errors import ExtractionError
from ..models import FetchedDocument, TradeRecord

SYSTEM_INSTRUCTION = """
It should read data from the uploaded PDF file and write data into the JSON array described below with some rules.
Rule1: Name can be obtained under Filer Information. Input First Name and Last Name only! Dont include "Hon.", "Mrs", "Mr", etc.
Rule2: in Type field (Transaction Type): if "P" input "Purchase", if "S" input "Sale".
[
	{
		"Name": "input First Name and Last Name only",
		"Asset": "input Full Asset Name",
		"Ticker": "input Ticker for the Asset",
		"Type": "input Transaction Type",
		"Date": "input Date",
		"Filed": "input Date under Notification Date",
		"Amount": "input Amount",
		"Cap":  True or False (boolean)
	}
]
"""

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class Extractor(Protocol):
    """Capability that turns document bytes into trade records."""

    def extract(self, documents: Sequence[FetchedDocument]) -> list[TradeRecord]:
        """Return every trade found across ``documents``; raise ExtractionError otherwise."""


def repair_payload(text: str) -> str:
    """Best-effort fix-up for model output cut off after the last object.

    A trailing ``}`` is restored when the text ends with neither ``}`` nor
    ``]``. Nothing else is touched, so an array missing its closing bracket
    still fails to parse.
    """

    cleaned = text.strip()
    match = _FENCE.match(cleaned)
    if match:
        cleaned = match.group(1).strip()
    if cleaned and not cleaned.endswith(("}", "]")):
        cleaned += "}"
    return cleaned


def parse_trade_payload(text: str) -> list[TradeRecord]:
    """Validate the extractor output as a JSON array of trade records."""

    repaired = repair_payload(text)
    try:
        payload = json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"invalid JSON format: {exc}", payload=text) from exc
    if not isinstance(payload, list):
        raise ExtractionError("expected a JSON array of trades", payload=text)
    try:
        return [TradeRecord.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise ExtractionError(f"trade record rejected: {exc}", payload=text) from exc


class GeminiExtractor:
    """Extractor calling the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        settings: ExtractorSettings,
        api_key: str,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("clerk_trades.extractor")
        self._client = httpx.Client(
            base_url=settings.endpoint,
            timeout=settings.timeout,
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def build_request(self, documents: Sequence[FetchedDocument]) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": "create JSON"}]
        for document in documents:
            parts.append({"text": f"source: {document.file_name}"})
            parts.append(
                {
                    "inline_data": {
                        "mime_type": "application/pdf",
                        "data": base64.b64encode(document.content).decode("ascii"),
                    }
                }
            )
        return {
            "system_instruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "temperature": self.settings.temperature,
                "topP": self.settings.top_p,
                "topK": self.settings.top_k,
                "responseMimeType": "application/json",
            },
        }

    def extract(self, documents: Sequence[FetchedDocument]) -> list[TradeRecord]:
        if not documents:
            return []
        self.logger.info("generating_trade_reports", reports=len(documents))
        try:
            response = self._client.post(
                f"/models/{self.settings.model}:generateContent",
                json=self.build_request(documents),
            )
        except httpx.HTTPError as exc:
            raise ExtractionError(f"failed to generate content: {exc}") from exc
        if not response.is_success:
            raise ExtractionError(
                f"failed to generate content: {response.status_code}", payload=response.text
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ExtractionError("unreadable service response", payload=response.text) from exc
        text = self._response_text(body)
        trades = parse_trade_payload(text)
        self.logger.info("trades_extracted", trades=len(trades), reports=len(documents))
        return trades

    @staticmethod
    def _response_text(body: dict[str, Any]) -> str:
        chunks: list[str] = []
        for candidate in body.get("candidates") or []:
            content = candidate.get("content") or {}
            for part in content.get("parts") or []:
                if "text" in part:
                    chunks.append(str(part["text"]))
        return "".join(chunks)


__all__ = [
    "Extractor",
    "GeminiExtractor",
    "SYSTEM_INSTRUCTION",
    "parse_trade_payload",
    "repair_payload",
]
