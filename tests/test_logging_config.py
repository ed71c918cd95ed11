from structlog.contextvars import get_contextvars, merge_contextvars

from core.logging_config import log_context


def test_log_context_binds_fields_for_the_block_only():
    with log_context(provider="klarna", klarna_order="https://example/orders/1", reference=None):
        assert get_contextvars() == {"provider": "klarna", "klarna_order": "https://example/orders/1"}
        event = merge_contextvars(None, "info", {"event": "payment_response_handled"})
        assert event["provider"] == "klarna"
    assert "provider" not in get_contextvars()


def test_log_context_nests_and_restores_outer_fields():
    with log_context(provider="klarna"):
        with log_context(reference="ORDER-42"):
            assert get_contextvars() == {"provider": "klarna", "reference": "ORDER-42"}
        assert get_contextvars() == {"provider": "klarna"}
