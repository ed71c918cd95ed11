import json
from decimal import Decimal

import pytest

from application.dtos.payments import StartPaymentRequest
from domain.payment.exceptions import (
    PaymentPreconditionError,
    PaymentValidationError,
    UnsupportedOperationError,
)
from domain.payment.status import NormalizedStatus
from domain.payment.value_objects import Price
from infrastructure.external.payments.exceptions import PaymentProviderError
from infrastructure.external.payments.klarna_checkout import BASE_TEST_URL


SESSION = {"purchase_country": "DE", "locale": "de-DE", "merchant_reference": "M-1"}


def eur(amount) -> Price:
    return Price.of(amount, "EUR")


class TestInitPayment:
    def test_creates_and_fetches_once_against_sandbox(self, gateway, klarna):
        snippet = gateway.init_payment(eur(100), SESSION)

        assert snippet
        assert "klarna-checkout-container" in snippet
        assert klarna.count("POST") == 1
        assert klarna.count("GET") == 1
        assert all(str(r.url).startswith(BASE_TEST_URL) for r in klarna.requests)

    def test_injects_currency_and_merchant_id(self, gateway, klarna):
        gateway.init_payment(eur(100), {**SESSION, "merchant": {"terms_uri": "https://shop.example/terms"}})

        body = json.loads(klarna.requests[0].content)
        assert body["purchase_currency"] == "EUR"
        assert body["merchant"] == {"terms_uri": "https://shop.example/terms", "id": "E1"}
        assert body["locale"] == "de-DE"

    def test_does_not_mutate_caller_config(self, gateway):
        config = dict(SESSION)
        gateway.init_payment(eur(100), config)
        assert config == SESSION

    def test_missing_locale_is_named(self, gateway, klarna):
        config = {k: v for k, v in SESSION.items() if k != "locale"}

        with pytest.raises(PaymentValidationError) as exc_info:
            gateway.init_payment(eur(100), config)

        assert exc_info.value.missing == ["locale"]
        assert exc_info.value.message.endswith("required: locale")
        assert klarna.requests == []

    def test_missing_keys_keep_declaration_order(self, gateway):
        with pytest.raises(PaymentValidationError) as exc_info:
            gateway.init_payment(eur(100), {"locale": "de-DE"})
        assert exc_info.value.missing == ["purchase_country", "merchant_reference"]
        assert exc_info.value.details["missing"] == ["purchase_country", "merchant_reference"]

    def test_order_without_snippet_is_a_provider_error(self, gateway, klarna):
        klarna.snippet_enabled = False
        with pytest.raises(PaymentProviderError):
            gateway.init_payment(eur(100), SESSION)

    def test_start_payment_wraps_snippet_with_host_order(self, gateway):
        class Agent:
            def get_order(self):
                return {"order_id": "ORDER-42"}

        result = gateway.start_payment(Agent(), eur(Decimal("99.95")), StartPaymentRequest(**SESSION))
        assert result.order == {"order_id": "ORDER-42"}
        assert result.provider == "klarna"
        assert result.snippet


class TestHandleResponse:
    def test_requires_klarna_order(self, gateway):
        with pytest.raises(PaymentValidationError) as exc_info:
            gateway.handle_response({"foo": "bar"})
        assert exc_info.value.missing == ["klarna_order"]
        assert gateway.get_authorized_data() == {}

    def test_stores_authorized_data_and_maps_status(self, gateway, klarna):
        uri = klarna.seed("checkout_complete", reservation="R-1", reference="REF-1")

        status = gateway.handle_response({"klarna_order": uri, "other": "ignored"})

        assert gateway.get_authorized_data() == {"klarna_order": uri}
        assert status.normalized_code is NormalizedStatus.AUTHORIZED
        assert status.merchant_order_id == "ORDER-42"
        assert status.provider_order_id == klarna.orders[uri]["id"]
        assert status.raw_status == "checkout_complete"
        assert status.additional_data["amount"] == "10000"
        assert status.additional_data["reservation"] == "R-1"
        assert status.additional_data["reference"] == "REF-1"
        assert json.loads(status.additional_data["marshal"])["id"] == klarna.orders[uri]["id"]

    @pytest.mark.parametrize(
        "remote_status,expected",
        [
            ("checkout_complete", NormalizedStatus.AUTHORIZED),
            ("created", NormalizedStatus.CLEARED),
            ("checkout_incomplete", NormalizedStatus.CANCELLED),
        ],
    )
    def test_code_follows_remote_status(self, gateway, klarna, remote_status, expected):
        uri = klarna.seed(remote_status)
        assert gateway.handle_response({"klarna_order": uri}).normalized_code is expected

    def test_repeated_calls_reflect_current_remote_state(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")
        first = gateway.handle_response({"klarna_order": uri})

        klarna.orders[uri]["status"] = "created"
        second = gateway.handle_response({"klarna_order": uri})

        assert first.normalized_code is NormalizedStatus.AUTHORIZED
        assert second.normalized_code is NormalizedStatus.CLEARED
        assert klarna.count("GET") == 2

    def test_last_response_wins(self, gateway, klarna):
        first = klarna.seed("checkout_complete")
        second = klarna.seed("checkout_complete")
        gateway.handle_response({"klarna_order": first})
        gateway.handle_response({"klarna_order": second})
        assert gateway.get_authorized_data() == {"klarna_order": second}

    def test_numeric_remote_ids_are_reported_as_strings(self, gateway, klarna):
        uri = klarna.seed("checkout_complete", reservation=987, reference=654)
        klarna.orders[uri]["merchant_reference"] = {"orderid1": "M-1", "orderid2": 42}

        status = gateway.handle_response({"klarna_order": uri})

        assert status.merchant_order_id == "42"
        assert status.additional_data["reservation"] == "987"
        assert status.additional_data["reference"] == "654"

    def test_accepts_objects_exposing_as_dict(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")

        class Callback:
            def as_dict(self):
                return {"klarna_order": uri}

        assert gateway.handle_response(Callback()).is_authorized

    @pytest.mark.parametrize("klarna_order", ["", "None", "checkout/orders/FZ0001"])
    def test_unusable_order_uri_raises_provider_error(self, gateway, klarna, klarna_order):
        with pytest.raises(PaymentProviderError):
            gateway.handle_response({"klarna_order": klarna_order})
        assert klarna.requests == []

    def test_unknown_order_raises_provider_error(self, gateway):
        with pytest.raises(PaymentProviderError) as exc_info:
            gateway.handle_response({"klarna_order": f"{BASE_TEST_URL}/checkout/orders/missing"})
        assert exc_info.value.http_status == 404
        assert exc_info.value.message == "Order not found"


class TestExecuteDebit:
    def test_price_is_rejected(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")
        gateway.set_authorized_data({"klarna_order": uri})

        with pytest.raises(UnsupportedOperationError):
            gateway.execute_debit(eur(10), "ORDER-42")
        with pytest.raises(UnsupportedOperationError):
            gateway.execute_debit(price=eur(0))
        assert klarna.requests == []

    def test_requires_authorized_session(self, gateway):
        with pytest.raises(PaymentPreconditionError):
            gateway.execute_debit(reference="ORDER-42")

    def test_unusable_authorized_order_uri_raises_provider_error(self, gateway, klarna):
        gateway.set_authorized_data({"klarna_order": "None"})

        with pytest.raises(PaymentProviderError) as exc_info:
            gateway.execute_debit(reference="ORDER-42")

        assert exc_info.value.details["url"] == "None"
        assert klarna.requests == []

    def test_captures_complete_checkout(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")
        gateway.handle_response({"klarna_order": uri})

        status = gateway.execute_debit(reference="ORDER-42")

        assert status.normalized_code is NormalizedStatus.CLEARED
        assert status.raw_status == "created"
        assert status.merchant_order_id == "ORDER-42"
        assert set(status.additional_data) == {"amount", "marshal"}
        update = [r for r in klarna.requests if r.method == "POST"]
        assert len(update) == 1
        assert json.loads(update[0].content) == {"status": "created"}

    def test_capture_twice_does_not_update_again(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")
        gateway.set_authorized_data({"klarna_order": uri})

        first = gateway.execute_debit()
        second = gateway.execute_debit()

        assert first.normalized_code is NormalizedStatus.CLEARED
        assert second.normalized_code is NormalizedStatus.CLEARED
        assert klarna.count("POST") == 1

    def test_already_created_order_is_only_reported(self, gateway, klarna):
        uri = klarna.seed("created")
        gateway.set_authorized_data({"klarna_order": uri})

        results = [gateway.execute_debit(reference="ORDER-42") for _ in range(2)]

        assert [s.normalized_code for s in results] == [NormalizedStatus.CLEARED] * 2
        assert klarna.count("POST") == 0
        assert klarna.count("GET") == 2

    def test_incomplete_checkout_is_left_untouched(self, gateway, klarna):
        uri = klarna.seed("checkout_incomplete")
        gateway.set_authorized_data({"klarna_order": uri})

        status = gateway.execute_debit()

        assert status.normalized_code is NormalizedStatus.CANCELLED
        assert status.raw_status == "checkout_incomplete"
        assert klarna.count("POST") == 0

    def test_resumes_from_restored_authorized_data(self, gateway, klarna):
        uri = klarna.seed("checkout_complete")
        gateway.handle_response({"klarna_order": uri})
        persisted = gateway.get_authorized_data()

        from infrastructure.external.payments.klarna_client import KlarnaGateway

        with KlarnaGateway(gateway.options, connector_factory=klarna.connector_factory) as resumed:
            resumed.set_authorized_data(persisted)
            assert resumed.execute_debit(reference="ORDER-42").is_cleared


class TestExecuteCredit:
    def test_always_not_implemented(self, gateway):
        with pytest.raises(NotImplementedError):
            gateway.execute_credit(eur(10), "ORDER-42", "TX-1")
