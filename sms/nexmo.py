from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from config.settings import settings
from sms.errors import GatewayError, RequestBuildError, ResponseDecodeError, ResponseReadError, TransportError
from sms.gateway import Gateway, Message

log = logging.getLogger("sms.nexmo")

# Read at call time, so embedding processes (and tests) may reassign it.
NEXMO_ENDPOINT = settings.NEXMO_ENDPOINT

# Per-message status reported by Nexmo when the message was accepted.
STATUS_OK = "0"


def _dest_hint(v: str, keep: int = 4) -> str:
    v = (v or "").strip()
    if not v:
        return ""
    if len(v) <= keep:
        return v
    return f"...{v[-keep:]}"


class NexmoResponseMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="message-id")
    status: Optional[str] = None
    error_text: Optional[str] = Field(default=None, alias="error-text")
    remaining_balance: Optional[str] = Field(default=None, alias="remaining-balance")
    message_price: Optional[str] = Field(default=None, alias="message-price")
    network: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class NexmoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_count: Optional[str] = Field(default=None, alias="message-count")
    messages: List[NexmoResponseMessage] = Field(default_factory=list)

    # JSON nulls decode to zero values rather than failing.
    @model_validator(mode="before")
    @classmethod
    def _null_body(cls, data: Any) -> Any:
        return {} if data is None else data

    @field_validator("messages", mode="before")
    @classmethod
    def _null_messages(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [{} if m is None else m for m in v]
        return v


def build_query(
    api_key: str = "",
    api_secret: str = "",
    sender: str = "",
    to: str = "",
    text: str = "",
    callback: str = "",
) -> str:
    """Form-encode the non-empty fields of a Nexmo send request.

    Empty fields are left out entirely. Keys are emitted in sorted order.
    """
    fields = {
        "api_key": api_key,
        "api_secret": api_secret,
        "from": sender,
        "to": to,
        "text": text,
        "callback": callback,
    }
    return urlencode(sorted((k, v) for k, v in fields.items() if v))


@dataclass(frozen=True)
class NexmoGateway(Gateway):
    """Gateway posting to the Nexmo SMS REST API.

    Credentials are fixed at construction. Recipient, text and callback are
    per-call values and never stored on the gateway, so one instance can be
    shared across threads. When ``client`` is None a fresh httpx client is
    created (and closed) for every send.
    """

    api_key: str = ""
    api_secret: str = ""
    sender: str = ""
    client: Optional[httpx.Client] = field(default=None, repr=False, compare=False)

    def query(self, to: str, message: Message | str, callback: str = "") -> str:
        return build_query(
            api_key=self.api_key,
            api_secret=self.api_secret,
            sender=self.sender,
            to=to,
            text=str(message),
            callback=callback,
        )

    def send(self, to: str, message: Message | str, callback: str = "") -> NexmoResponse:
        body = self.query(to, message, callback)
        if self.client is not None:
            return self._post(self.client, to, body)
        with httpx.Client(timeout=settings.NEXMO_TIMEOUT_SECONDS) as client:
            return self._post(client, to, body)

    def _post(self, client: httpx.Client, to: str, body: str) -> NexmoResponse:
        t0 = time.time()
        log.info(
            "sms_send_attempt",
            extra={"extra": {"event": "sms_send_attempt", "provider": "nexmo", "dest": _dest_hint(to)}},
        )
        try:
            resp, status_code = _exchange(client, body)
        except GatewayError as e:
            dt_ms = int((time.time() - t0) * 1000)
            log.warning(
                "sms_send_exception",
                extra={
                    "extra": {
                        "event": "sms_send_exception",
                        "provider": "nexmo",
                        "dest": _dest_hint(to),
                        "error_type": type(e).__name__,
                        "message": str(e),
                        "latency_ms": dt_ms,
                    }
                },
            )
            raise

        dt_ms = int((time.time() - t0) * 1000)
        log.info(
            "sms_send_result",
            extra={
                "extra": {
                    "event": "sms_send_result",
                    "provider": "nexmo",
                    "dest": _dest_hint(to),
                    "status_code": status_code,
                    "message_count": resp.message_count,
                    "latency_ms": dt_ms,
                }
            },
        )
        return resp


def _exchange(client: httpx.Client, body: str) -> Tuple[NexmoResponse, int]:
    try:
        request = client.build_request(
            "POST",
            NEXMO_ENDPOINT,
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except (httpx.InvalidURL, ValueError) as exc:
        raise RequestBuildError(f"cannot build request for {NEXMO_ENDPOINT!r}: {exc}") from exc

    try:
        response = client.send(request, stream=True)
    except httpx.RequestError as exc:
        raise TransportError(f"request to nexmo failed: {exc}") from exc

    try:
        content = response.read()
    except (httpx.RequestError, httpx.StreamError) as exc:
        raise ResponseReadError(f"reading nexmo response failed: {exc}") from exc
    finally:
        response.close()

    # The HTTP status is not inspected; Nexmo reports failures per message.
    try:
        # Invalid UTF-8 inside strings becomes U+FFFD.
        text = content.decode("utf-8", errors="replace")
        return NexmoResponse.model_validate_json(text), response.status_code
    except ValidationError as exc:
        raise ResponseDecodeError(f"cannot decode nexmo response: {exc}", response=NexmoResponse()) from exc
