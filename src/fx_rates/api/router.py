"""fx_rates REST API — read the rate table, set a pair (and its reciprocal)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.container import Container, get_container
from src.fx_common.response import ApiResponse, success_response
from src.fx_rates.application.schemas import (
    RateRowResponse,
    RateTableResponse,
    SetRateRequest,
    SetRateResponse,
)

router = APIRouter(prefix="/rates", tags=["rates"])


@router.get("")
async def get_rates(
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    table = await container.rates.get_all_rates()
    return success_response(RateTableResponse(table).model_dump(mode="json"), request)


@router.put("")
async def set_rate(
    body: SetRateRequest,
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    base_row, counter_row = await container.rates.set_rate(
        body.base_currency, body.counter_currency, body.rate
    )
    data = SetRateResponse(
        base=RateRowResponse.from_domain(base_row),
        counter=RateRowResponse.from_domain(counter_row),
    )
    return success_response(data.model_dump(mode="json"), request)
