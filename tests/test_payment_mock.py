from restaurant_billing.services.payment.base import PaymentOutcome, to_minor_units
from restaurant_billing.services.payment.mock import MockPaymentService


def make_service(failure_rate=0.0):
    return MockPaymentService(failure_rate=failure_rate, min_latency=0, max_latency=0)


def test_minor_units():
    assert to_minor_units(495) == 49500


async def test_intent_succeeds_by_default():
    service = make_service()

    intent = await service.create_intent(49500, "inr", metadata={"order_id": "abc"})
    outcome = await service.retrieve_outcome(intent.payment_intent_id)

    assert intent.success
    assert intent.payment_intent_id.startswith("pi_mock_")
    assert outcome.succeeded
    assert outcome.amount == 49500


async def test_failure_rate_one_declines_everything():
    service = make_service(failure_rate=1.0)

    intent = await service.create_intent(1000, "inr")
    outcome = await service.retrieve_outcome(intent.payment_intent_id)

    assert intent.success
    assert outcome.outcome == PaymentOutcome.FAILED
    assert outcome.error_code in {code for code, _ in MockPaymentService.DECLINE_REASONS}


async def test_non_positive_amount_is_rejected():
    intent = await make_service().create_intent(0, "inr")

    assert not intent.success
    assert intent.error_code == "invalid_amount"


async def test_unknown_intent_is_an_error():
    outcome = await make_service().retrieve_outcome("pi_unknown")

    assert outcome.outcome == PaymentOutcome.ERROR
    assert outcome.error_code == "resource_missing"


async def test_forced_outcome():
    service = make_service()
    intent = await service.create_intent(1000, "inr")

    service.set_outcome(intent.payment_intent_id, PaymentOutcome.CANCELED)

    assert (await service.retrieve_outcome(intent.payment_intent_id)).outcome == PaymentOutcome.CANCELED


async def test_webhook_parsing():
    service = make_service()

    assert await service.verify_webhook(b'{"type": "payment_intent.succeeded"}', "") == {
        "type": "payment_intent.succeeded"
    }
    assert await service.verify_webhook(b"not json", "") is None
