"""Apaym payment gateway integration."""

from streamgate.integrations.apaym.gateway_client import (
    ApaymGatewayClient,
    ApaymGatewayError,
    GatewayInitiation,
    GatewayStatus,
)

__all__ = [
    "ApaymGatewayClient",
    "ApaymGatewayError",
    "GatewayInitiation",
    "GatewayStatus",
]
