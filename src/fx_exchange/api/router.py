"""fx_exchange REST API — execute an exchange, read the transaction log."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.container import Container, get_container
from src.fx_common.errors import EXCHANGE_DECLINED_CODE
from src.fx_common.response import ApiResponse, error_response, success_response
from src.fx_exchange.application.schemas import (
    ExchangeLogResponse,
    ExchangeRequestBody,
    ExchangeResultItem,
)

router = APIRouter(tags=["exchange"])


@router.post("/exchange", response_model=None)
async def exchange(
    body: ExchangeRequestBody,
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse | JSONResponse:
    result = await container.coordinator.exchange(body.to_domain())
    data = ExchangeResultItem.from_domain(result).model_dump(mode="json")
    if result.ok:
        return success_response(data, request)
    # Declined: the attempt is logged and returned, but the client gets a 4xx
    declined = error_response(
        EXCHANGE_DECLINED_CODE, result.obs or "Exchange declined", data, request
    )
    return JSONResponse(status_code=422, content=declined.model_dump())


@router.get("/log")
async def get_log(
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    entries = await container.log.get_all()
    data = ExchangeLogResponse(items=[ExchangeResultItem.from_domain(e) for e in entries])
    return success_response(data.model_dump(mode="json"), request)
