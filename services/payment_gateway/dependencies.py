from fastapi import Request

from .client import PaymentGatewayClient


def get_gateway(request: Request) -> PaymentGatewayClient:
    """The process-wide gateway client created in main.py's lifespan."""
    return request.app.state.gateway
