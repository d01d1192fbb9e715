"""
Raise Backend -- HTTP client

Thin client for the external raise backend that simulates KYC,
accreditation, crypto payments, cap-table issuance and Compliance Pack
generation. Every call is a JSON POST to {API_BASE}/{path}.

    from portal.backend.client import RaiseClient

    rb = RaiseClient()
    kyc = rb.start_kyc(email="ada@example.com", name="Ada Lovelace")
    print(kyc.reference_id)

Unlike a bare fetch-and-parse, responses are checked: a non-2xx status,
a body that is not JSON, or a missing reference id raises an error
instead of being treated as success.

Environment variables:
    RAISE_API_BASE     -- Backend base URL (default: http://localhost:3000)
    RAISE_API_TIMEOUT  -- Request timeout in seconds (default: 30)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

API_BASE = os.getenv("RAISE_API_BASE", "http://localhost:3000").rstrip("/") + "/api"
DEFAULT_TIMEOUT = float(os.getenv("RAISE_API_TIMEOUT", "30"))

WEBHOOK_CONFIRMATIONS = 12

# Values of a "status" field that mean the check did not pass.
_DECLINED_STATUSES = {"failed", "fail", "rejected", "declined", "denied"}


# ── Result types ──────────────────────────────────────────────────────────


@dataclass
class VerificationResult:
    """Result from kyc/start or accredit/start."""

    reference_id: str
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class PaymentResult:
    """Result from payments/checkout or payments/webhook."""

    reference_id: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class IssuanceResult:
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class CompliancePackResult:
    download_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


# ── Exceptions ────────────────────────────────────────────────────────────


class RaiseApiError(Exception):
    """Base exception for raise backend errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(RaiseApiError):
    """The backend answered 2xx but the body is not usable."""


class VerificationDeclined(RaiseApiError):
    """KYC or accreditation came back with a failing status."""


# ── Client ────────────────────────────────────────────────────────────────


class RaiseClient:
    """
    Client for the raise backend.

    Args:
        base_url: Backend URL including the /api suffix. Defaults to API_BASE.
        timeout: Request timeout in seconds.
        session: Optional requests.Session to send requests with.
    """

    def __init__(
        self,
        base_url: str = API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def close(self) -> None:
        self._session.close()

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        logger.info("POST %s", url)
        try:
            resp = self._session.request("POST", url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Raise backend unreachable at %s: %s", url, e)
            raise RaiseApiError(f"Cannot reach raise backend at {url}: {e}") from e

        if resp.status_code >= 400:
            try:
                err_body = resp.json()
            except ValueError:
                err_body = resp.text
            logger.warning("Raise backend %s returned %d", path, resp.status_code)
            raise RaiseApiError(
                f"API error {resp.status_code}: {err_body}",
                status_code=resp.status_code,
                body=err_body,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{path} returned a non-JSON body",
                status_code=resp.status_code,
                body=resp.text,
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{path} returned JSON that is not an object",
                status_code=resp.status_code,
                body=data,
            )
        return data

    @staticmethod
    def _reference_id(path: str, data: Dict[str, Any]) -> str:
        ref = data.get("referenceId")
        if not ref:
            raise MalformedResponseError(f"{path} response has no referenceId", body=data)
        return str(ref)

    def _verification(self, path: str, body: Dict[str, Any]) -> VerificationResult:
        data = self._post(path, body)
        status = data.get("status")
        if data.get("passed") is False or (
            isinstance(status, str) and status.lower() in _DECLINED_STATUSES
        ):
            raise VerificationDeclined(
                f"{path} declined (status={status!r})",
                body=data,
            )
        return VerificationResult(
            reference_id=self._reference_id(path, data),
            status=status,
            raw=data,
        )

    # ── Verification ──────────────────────────────────────────────────

    def start_kyc(self, email: str, name: str) -> VerificationResult:
        """Run the (simulated) identity check for an investor."""
        return self._verification("kyc/start", {"email": email, "name": name})

    def start_accreditation(self, email: str) -> VerificationResult:
        """Run the (simulated) accredited-investor verification."""
        return self._verification("accredit/start", {"email": email})

    # ── Payment ───────────────────────────────────────────────────────

    def create_payment(
        self,
        asset: str,
        amount: Decimal,
        amount_usd: Decimal,
        offer_id: str,
        email: str,
    ) -> PaymentResult:
        """
        Open a crypto payment.

        Args:
            asset: Payment asset symbol (USDC, BTC, ETH).
            amount: Amount of the asset to send.
            amount_usd: USD value being invested.
            offer_id: Offer the payment is for.
            email: Investor email.

        Returns:
            PaymentResult whose reference_id is the transaction id.
        """
        payload = {
            "asset": asset,
            "amount": float(amount),
            "amountUSD": float(amount_usd),
            "offerId": offer_id,
            "email": email,
        }
        data = self._post("payments/checkout", payload)
        return PaymentResult(reference_id=self._reference_id("payments/checkout", data), raw=data)

    def confirm_payment(
        self,
        txid: str,
        confirmations: int = WEBHOOK_CONFIRMATIONS,
    ) -> PaymentResult:
        """Simulate the chain webhook that confirms a payment."""
        data = self._post("payments/webhook", {"txid": txid, "confirmations": confirmations})
        return PaymentResult(reference_id=self._reference_id("payments/webhook", data), raw=data)

    # ── Issuance & documents ──────────────────────────────────────────

    def issue_shares(
        self,
        investor: str,
        shares: Decimal,
        price: Decimal,
        offer_id: str,
    ) -> IssuanceResult:
        payload = {
            "investor": investor,
            "shares": float(shares),
            "price": float(price),
            "offerId": offer_id,
        }
        return IssuanceResult(raw=self._post("captable/issue", payload))

    def request_compliance_pack(
        self,
        investor: str,
        shares: Decimal,
        price: Decimal,
        offer_id: str,
        tx_ref: str,
    ) -> CompliancePackResult:
        """Generate the Compliance Pack. downloadUrl is optional in the reply."""
        payload = {
            "investor": investor,
            "shares": float(shares),
            "price": float(price),
            "offerId": offer_id,
            "txRef": tx_ref,
        }
        data = self._post("documents/compliance-pack", payload)
        return CompliancePackResult(download_url=data.get("downloadUrl") or None, raw=data)
