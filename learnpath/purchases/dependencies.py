"""Dependency injection for the purchases module."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .gateway import GatewayError
from .service import PurchaseError, PurchaseService


async def get_purchase_service(request: Request) -> PurchaseService:
    """Get purchase service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "purchase_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Purchase service not available",
        )
    return app_state.purchase_service


PurchaseServiceDep = Annotated[PurchaseService, Depends(get_purchase_service)]


def handle_purchase_error(error: PurchaseError | GatewayError) -> HTTPException:
    """Convert purchase and gateway errors to HTTP exceptions."""
    status_map = {
        "purchase_not_found": status.HTTP_404_NOT_FOUND,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "signature_mismatch": status.HTTP_400_BAD_REQUEST,
        "already_completed": status.HTTP_409_CONFLICT,
        "settlement_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "gateway_error": status.HTTP_502_BAD_GATEWAY,
        "gateway_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
