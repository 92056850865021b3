"""fx_account REST API — list internal accounts, administrative balance override."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from src.fx_account.application.schemas import (
    AccountListResponse,
    AccountResponse,
    SetBalanceRequest,
)
from src.container import Container, get_container
from src.fx_common.response import ApiResponse, success_response

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("")
async def list_accounts(
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    accounts = await container.accounts.get_accounts()
    data = AccountListResponse(items=[AccountResponse.from_domain(a) for a in accounts])
    return success_response(data.model_dump(mode="json"), request)


@router.put("/{account_id}/balance")
async def set_account_balance(
    body: SetBalanceRequest,
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    account_id: int = Path(..., ge=1),
) -> ApiResponse:
    account = await container.accounts.set_balance(account_id, body.balance)
    data = AccountResponse.from_domain(account)
    return success_response(data.model_dump(mode="json"), request)
