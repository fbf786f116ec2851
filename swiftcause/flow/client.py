"""Thin HTTP client for the SwiftCause backend (requests)."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import requests


class ApiError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class SwiftCauseClient:
    def __init__(
        self,
        base: str,
        bearer: Optional[str] = None,
        timeout: float = 12.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base = base.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()
        self.headers = {"accept": "application/json"}
        if bearer:
            self.headers["Authorization"] = f"Bearer {bearer}"

    def with_session(self, session: Any) -> "SwiftCauseClient":
        """Same transport, authenticated as ``session``."""
        return SwiftCauseClient(self.base, bearer=session.token, timeout=self.timeout, http=self.http)

    def url(self, path: str) -> str:
        return self.base + (path if path.startswith("/") else "/" + path)

    # ----------------------------
    # Transport
    # ----------------------------
    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None, **headers: str) -> Tuple[int, Dict[str, Any]]:
        r = self.http.request(
            method,
            self.url(path),
            json=payload,
            headers={**self.headers, **headers},
            timeout=self.timeout,
        )
        try:
            body = r.json()
        except ValueError:
            body = {}
        return r.status_code, body if isinstance(body, dict) else {}

    def _expect_ok(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        status, body = self._send(method, path, payload)
        if status >= 400:
            raise ApiError(status, str(body.get("error") or "Request failed"))
        return body

    # ----------------------------
    # Endpoints
    # ----------------------------
    def kiosk_login(self, kiosk_id: str, access_code: str) -> Dict[str, Any]:
        return self._expect_ok("POST", "/kiosk/login", {"kioskId": kiosk_id, "accessCode": access_code})

    def get_campaign(self, campaign_id: str) -> Dict[str, Any]:
        return self._expect_ok("GET", f"/campaigns/{campaign_id}")

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        campaign_id: str,
        donation_data: Dict[str, Any],
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """RPC shape: the body is returned as-is, ``success=false`` included."""
        extra = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        status, body = self._send(
            "POST",
            "/payments/intent",
            {"amount": amount, "currency": currency, "campaignId": campaign_id, "donationData": donation_data},
            **extra,
        )
        if "success" not in body:
            body = {"success": False, "error": body.get("error") or f"HTTP {status}"}
        return body

    def confirm_donation(self, payment_intent_id: str, gift_aid: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"paymentIntentId": payment_intent_id}
        if gift_aid:
            payload["giftAid"] = gift_aid
        return self._expect_ok("POST", "/donations/confirm", payload)

    def attach_email(self, donation_id: str, email: str) -> Dict[str, Any]:
        return self._expect_ok("PATCH", f"/donations/{donation_id}/email", {"donorEmail": email})
