"""Tests for the Razorpay gateway adapter."""

import time

import pytest
import razorpay
import requests
from razorpay import errors as razorpay_errors

from learnpath.config.settings import Settings
from learnpath.purchases.gateway import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayOrder,
    RazorpayGateway,
)

from ..conftest import KEY_ID, KEY_SECRET, FakeOrders, gateway_with, sign


class TestVerifySignature:
    """Tests for callback signature checks."""

    def test_accepts_matching_signature(self, gateway) -> None:
        signature = sign("order_1", "pay_1")

        assert gateway.verify_signature("order_1", "pay_1", signature) is True

    def test_rejects_mismatches(self, gateway) -> None:
        signature = sign("order_1", "pay_1")

        assert gateway.verify_signature("order_1", "pay_2", signature) is False
        assert gateway.verify_signature("order_2", "pay_1", signature) is False
        assert gateway.verify_signature("order_1", "pay_1", sign("order_1", "pay_1", "other")) is False
        assert gateway.verify_signature("order_1", "pay_1", "0" * 64) is False

    @pytest.mark.parametrize("signature", ["éabc", "签名", sign("order_1", "pay_1")[:-1] + "é"])
    def test_rejects_non_ascii_signature(self, gateway, signature) -> None:
        assert gateway.verify_signature("order_1", "pay_1", signature) is False

    def test_builds_sdk_client_from_settings(self, settings) -> None:
        gateway = RazorpayGateway(settings)

        assert isinstance(gateway.client, razorpay.Client)
        assert gateway.client.auth == (KEY_ID, KEY_SECRET)
        assert gateway.verify_signature("order_1", "pay_1", sign("order_1", "pay_1")) is True

    def test_without_secret(self) -> None:
        gateway = RazorpayGateway(Settings(razorpay_key_id=None, razorpay_key_secret=None))

        with pytest.raises(GatewayNotConfiguredError):
            gateway.verify_signature("order_1", "pay_1", "sig")


class TestCreateOrder:
    """Tests for the Orders call."""

    @pytest.mark.asyncio
    async def test_success(self, gateway, gateway_calls) -> None:
        order = await gateway.create_order(
            amount=49900, currency="INR", receipt="receipt_1"
        )

        assert order.id == "order_test_001"
        assert order.amount == 49900
        assert order.currency == "INR"
        assert order.receipt == "receipt_1"
        assert order.status == "created"
        assert gateway_calls == [
            {"amount": 49900, "currency": "INR", "receipt": "receipt_1"}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            razorpay_errors.BadRequestError("The amount must be atleast INR 1.00"),
            razorpay_errors.ServerError("The server encountered an error"),
            razorpay_errors.GatewayError("Gateway unavailable"),
        ],
    )
    async def test_sdk_error(self, settings, error) -> None:
        gateway = gateway_with(settings, FakeOrders(error=error))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.create_order(amount=100, currency="INR", receipt="r")
        assert exc_info.value.code == "gateway_error"

    @pytest.mark.asyncio
    async def test_connection_error(self, settings) -> None:
        gateway = gateway_with(
            settings, FakeOrders(error=requests.ConnectionError("connection refused"))
        )

        with pytest.raises(GatewayError) as exc_info:
            await gateway.create_order(amount=100, currency="INR", receipt="r")
        assert "request error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings) -> None:
        gateway = gateway_with(settings, FakeOrders(error=ValueError("Expecting value")))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.create_order(amount=100, currency="INR", receipt="r")
        assert exc_info.value.message == "Payment gateway returned invalid JSON"

    @pytest.mark.asyncio
    async def test_order_without_id(self, settings) -> None:
        gateway = gateway_with(
            settings, FakeOrders(response={"amount": 100, "currency": "INR"})
        )

        with pytest.raises(GatewayError):
            await gateway.create_order(amount=100, currency="INR", receipt="r")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        settings = Settings(
            razorpay_key_id=KEY_ID,
            razorpay_key_secret=KEY_SECRET,
            razorpay_timeout_seconds=0.05,
        )
        orders = FakeOrders()
        slow_create = orders.create

        def create(data=None, **kwargs):
            time.sleep(0.3)
            return slow_create(data, **kwargs)

        orders.create = create
        gateway = gateway_with(settings, orders)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.create_order(amount=100, currency="INR", receipt="r")
        assert exc_info.value.message == "Payment gateway timeout"

    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        gateway = RazorpayGateway(Settings(razorpay_key_id=None, razorpay_key_secret=None))

        assert gateway.is_configured is False
        with pytest.raises(GatewayNotConfiguredError) as exc_info:
            await gateway.create_order(amount=100, currency="INR", receipt="r")
        assert exc_info.value.code == "gateway_not_configured"


def test_order_to_dict_keeps_gateway_fields() -> None:
    order = GatewayOrder.from_payload(
        {"id": "order_1", "amount": 100, "currency": "INR", "entity": "order"}
    )

    data = order.to_dict()

    assert data["id"] == "order_1"
    assert data["entity"] == "order"
    assert data["receipt"] is None
