"""
Tests for the workflow actions.

Scenarios follow one investor from the empty form to the Compliance
Pack, plus what happens when the backend fails part-way through.
"""

from decimal import Decimal

import pytest

from conftest import FakeRaiseClient
from portal.backend.client import RaiseApiError, VerificationDeclined
from portal.models.schemas import Investor, Stage, WorkflowState
from portal.workflow import steps
from portal.workflow.transitions import InvalidTransition


def ready_for_checkout(**overrides) -> WorkflowState:
    """An investor who has passed KYC and accreditation."""
    values = dict(
        investor=Investor(name="Ada Lovelace", email="ada@example.com"),
        asset="USDC",
        amount_usd=Decimal("5000"),
        stage=Stage.accredited,
        kyc_reference="kyc_001",
        accreditation_reference="acc_001",
    )
    values.update(overrides)
    return WorkflowState(**values)


class TestNewSession:

    def test_defaults_to_minimum_and_first_asset(self):
        state = steps.new_session()
        assert state.amount_usd == Decimal("5000")
        assert state.asset == "USDC"
        assert state.stage is Stage.not_started
        assert state.document_url is None


class TestUpdateDetails:

    def test_updates_fields(self):
        state = steps.update_details(
            steps.new_session(), name="Ada", email="ada@example.com", asset="BTC", amount_usd=Decimal("10000"),
        )
        assert state.investor.name == "Ada"
        assert state.investor.email == "ada@example.com"
        assert state.investor.country == "US"
        assert state.asset == "BTC"
        assert state.amount_usd == Decimal("10000")

    def test_no_change_returns_same_state(self):
        state = steps.new_session()
        assert steps.update_details(state) is state

    def test_rejects_unknown_asset(self):
        with pytest.raises(ValueError, match="DOGE"):
            steps.update_details(steps.new_session(), asset="DOGE")

    def test_identity_locked_after_kyc(self):
        state = ready_for_checkout(stage=Stage.kyc_passed)
        with pytest.raises(steps.DetailsLocked):
            steps.update_details(state, email="other@example.com")
        # resubmitting the same values is fine
        assert steps.update_details(state, name="Ada Lovelace", email="ada@example.com") is state

    def test_amount_locked_after_payment_created(self):
        state = ready_for_checkout(stage=Stage.payment_created, payment_txid="tx_001")
        with pytest.raises(steps.DetailsLocked):
            steps.update_details(state, amount_usd=Decimal("6000"))
        # amount can still change right up to payment creation
        assert steps.update_details(ready_for_checkout(), amount_usd=Decimal("6000")).amount_usd == Decimal("6000")


class TestVerificationSteps:

    def test_kyc_then_accreditation(self):
        backend = FakeRaiseClient()
        state = steps.update_details(steps.new_session(), name="Ada", email="ada@example.com")

        state = steps.start_kyc(state, backend)
        assert state.kyc_passed
        assert state.kyc_reference == "kyc_001"

        state = steps.start_accreditation(state, backend)
        assert state.accredited
        assert state.accreditation_reference == "acc_001"
        assert backend.calls == [
            ("start_kyc", {"email": "ada@example.com", "name": "Ada"}),
            ("start_accreditation", {"email": "ada@example.com"}),
        ]

    def test_accreditation_requires_kyc(self):
        backend = FakeRaiseClient()
        with pytest.raises(InvalidTransition):
            steps.start_accreditation(steps.new_session(), backend)
        assert backend.calls == []

    def test_kyc_runs_once(self):
        backend = FakeRaiseClient()
        with pytest.raises(InvalidTransition):
            steps.start_kyc(ready_for_checkout(stage=Stage.kyc_passed), backend)

    def test_declined_kyc_leaves_state_unchanged(self):
        backend = FakeRaiseClient(decline={"start_kyc"})
        state = steps.new_session()
        with pytest.raises(VerificationDeclined):
            steps.start_kyc(state, backend)
        assert state.stage is Stage.not_started

    def test_backend_error_propagates(self):
        backend = FakeRaiseClient(fail_on={"start_accreditation"})
        with pytest.raises(RaiseApiError):
            steps.start_accreditation(ready_for_checkout(stage=Stage.kyc_passed), backend)


class TestCheckout:

    def test_happy_path(self):
        backend = FakeRaiseClient()
        state = steps.run_checkout(ready_for_checkout(), backend)

        assert state.stage is Stage.document_ready
        assert state.payment_created and state.payment_confirmed and state.issued
        assert state.payment_txid == "tx_001"
        assert state.payment_reference == "pay_001"
        assert state.document_url == "https://docs.example.com/pack/seed-1.pdf"
        assert state.last_error is None
        assert backend.call_names == [
            "create_payment",
            "confirm_payment",
            "issue_shares",
            "request_compliance_pack",
        ]

    def test_call_payloads(self):
        backend = FakeRaiseClient()
        steps.run_checkout(ready_for_checkout(asset="BTC", amount_usd=Decimal("10000")), backend)
        calls = dict(backend.calls)

        assert calls["create_payment"] == {
            "asset": "BTC",
            "amount": Decimal("0.14705882"),
            "amount_usd": Decimal("10000"),
            "offer_id": "seed-1",
            "email": "ada@example.com",
        }
        assert calls["confirm_payment"] == {"txid": "tx_001", "confirmations": 12}
        assert calls["issue_shares"] == {
            "investor": "ada@example.com",
            "shares": Decimal("2000.000"),
            "price": Decimal("5"),
            "offer_id": "seed-1",
        }
        assert calls["request_compliance_pack"]["tx_ref"] == "pay_001"

    def test_no_document_url(self):
        backend = FakeRaiseClient(document_url=None)
        state = steps.run_checkout(ready_for_checkout(), backend)
        assert state.stage is Stage.document_ready
        assert state.document_url is None

    def test_confirm_payment_failure_keeps_partial_state(self):
        backend = FakeRaiseClient(fail_on={"confirm_payment"})
        with pytest.raises(steps.CheckoutInterrupted) as exc:
            steps.run_checkout(ready_for_checkout(), backend)

        partial = exc.value.state
        assert exc.value.step == "confirm_payment"
        assert partial.payment_created is True
        assert partial.payment_confirmed is False
        assert partial.issued is False
        assert partial.document_url is None
        assert partial.last_error.step == "confirm_payment"
        assert partial.last_error.status_code == 503
        assert "issue_shares" not in backend.call_names

    def test_resume_after_failure(self):
        failing = FakeRaiseClient(fail_on={"issue_shares"})
        with pytest.raises(steps.CheckoutInterrupted) as exc:
            steps.run_checkout(ready_for_checkout(), failing)
        assert exc.value.state.stage is Stage.payment_confirmed

        backend = FakeRaiseClient()
        state = steps.run_checkout(exc.value.state, backend)
        # payment is not created or confirmed a second time
        assert backend.call_names == ["issue_shares", "request_compliance_pack"]
        assert state.stage is Stage.document_ready
        assert state.last_error is None

    def test_gate_refuses_without_name(self):
        backend = FakeRaiseClient()
        state = ready_for_checkout(investor=Investor(name="", email="ada@example.com"))
        with pytest.raises(steps.CheckoutNotAllowed) as exc:
            steps.run_checkout(state, backend)
        assert exc.value.blockers == ["investor name is required"]
        assert backend.calls == []

    def test_gate_refuses_before_accreditation(self):
        with pytest.raises(steps.CheckoutNotAllowed):
            steps.run_checkout(ready_for_checkout(stage=Stage.kyc_passed), FakeRaiseClient())

    def test_gate_refuses_below_minimum(self):
        with pytest.raises(steps.CheckoutNotAllowed):
            steps.run_checkout(ready_for_checkout(amount_usd=Decimal("4999.99")), FakeRaiseClient())

    def test_completed_checkout_cannot_rerun(self):
        state = steps.run_checkout(ready_for_checkout(), FakeRaiseClient())
        with pytest.raises(InvalidTransition):
            steps.run_checkout(state, FakeRaiseClient())
