"""Shared fixtures: a scripted stand-in for the raise backend."""

import pytest
from fastapi.testclient import TestClient

from portal.backend.client import (
    CompliancePackResult,
    IssuanceResult,
    PaymentResult,
    RaiseApiError,
    VerificationDeclined,
    VerificationResult,
)
from portal.main import app
from portal.routes.session import get_raise_client
from portal.store import sessions


class FakeRaiseClient:
    """Records every call. Methods named in `fail_on` raise a 503,
    methods named in `decline` raise VerificationDeclined."""

    def __init__(self, fail_on=(), decline=(), document_url="https://docs.example.com/pack/seed-1.pdf"):
        self.calls = []
        self.fail_on = set(fail_on)
        self.decline = set(decline)
        self.document_url = document_url

    def _record(self, call, **kwargs):
        self.calls.append((call, kwargs))
        if call in self.decline:
            raise VerificationDeclined(f"{call} declined (status='rejected')")
        if call in self.fail_on:
            raise RaiseApiError(f"API error 503: {call} unavailable", status_code=503)

    @property
    def call_names(self):
        return [name for name, _ in self.calls]

    def start_kyc(self, email, name):
        self._record("start_kyc", email=email, name=name)
        return VerificationResult(reference_id="kyc_001", status="passed")

    def start_accreditation(self, email):
        self._record("start_accreditation", email=email)
        return VerificationResult(reference_id="acc_001", status="verified")

    def create_payment(self, asset, amount, amount_usd, offer_id, email):
        self._record(
            "create_payment",
            asset=asset, amount=amount, amount_usd=amount_usd, offer_id=offer_id, email=email,
        )
        return PaymentResult(reference_id="tx_001")

    def confirm_payment(self, txid, confirmations):
        self._record("confirm_payment", txid=txid, confirmations=confirmations)
        return PaymentResult(reference_id="pay_001")

    def issue_shares(self, investor, shares, price, offer_id):
        self._record("issue_shares", investor=investor, shares=shares, price=price, offer_id=offer_id)
        return IssuanceResult()

    def request_compliance_pack(self, investor, shares, price, offer_id, tx_ref):
        self._record(
            "request_compliance_pack",
            investor=investor, shares=shares, price=price, offer_id=offer_id, tx_ref=tx_ref,
        )
        return CompliancePackResult(download_url=self.document_url)


@pytest.fixture
def backend():
    return FakeRaiseClient()


@pytest.fixture
def client(backend):
    app.dependency_overrides[get_raise_client] = lambda: backend
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    sessions.clear()
