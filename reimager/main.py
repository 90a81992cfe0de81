"""FastAPI entry point exposing the Reimager REST API."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from .config import get_settings
from .downloads import fetch_download
from .errors import (
    DownloadTooLargeError,
    FlowInProgressError,
    GenerationServiceError,
    InputValidationError,
    NetworkError,
    PaymentFailedError,
    PaymentTimeoutError,
    ReimagerError,
)
from .history import GenerationResult
from .payments.units import is_address
from .schemas import (
    ErrorResponse,
    GenerateResponse,
    GenerationResultModel,
    HealthResponse,
    HistoryResponse,
    NotificationListResponse,
    NotificationModel,
)
from .service import ReimagerService, get_reimager_service
from .session import SessionRegistry, get_session_registry
from .uploads import UploadedImage, validate_upload

logger = logging.getLogger(__name__)


_ERROR_STATUS = (
    (InputValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (FlowInProgressError, status.HTTP_409_CONFLICT),
    (PaymentFailedError, status.HTTP_402_PAYMENT_REQUIRED),
    (PaymentTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (GenerationServiceError, status.HTTP_502_BAD_GATEWAY),
    (NetworkError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _status_for(exc: ReimagerError) -> int:
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _to_result_model(result: GenerationResult) -> GenerationResultModel:
    return GenerationResultModel(
        imageUrl=result.image_url,
        prompt=result.prompt,
        createdAt=result.created_at,
        txHash=result.tx_hash,
    )


async def _read_upload(upload: Optional[UploadFile]) -> Optional[UploadedImage]:
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    return UploadedImage(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )


app = FastAPI(title="Reimager Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse, summary="Health Check Endpoint")
async def healthcheck(service: ReimagerService = Depends(get_reimager_service)):
    settings = get_settings()
    return HealthResponse(
        status="ok",
        model=settings.replicate_model,
        configured=service.is_configured,
        recipient=settings.payment_recipient,
        amount=str(settings.payment_amount),
    )


@app.post(
    "/api/generate",
    response_model=GenerateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Generate an image from a prompt, optionally reimagining an uploaded image",
)
async def generate(
    prompt: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    service: ReimagerService = Depends(get_reimager_service),
):
    if not prompt or not prompt.strip():
        return _error_response(status.HTTP_400_BAD_REQUEST, "Prompt is required")

    uploaded = await _read_upload(image)
    try:
        validate_upload(uploaded, get_settings().max_upload_bytes)
    except InputValidationError as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

    try:
        generated = await run_in_threadpool(service.generate_image, prompt, uploaded)
    except GenerationServiceError as exc:
        return _error_response(
            exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            exc.message,
            exc.details,
        )

    return GenerateResponse(success=True, imageUrl=generated.image_url, prompt=generated.prompt)


@app.post(
    "/api/reimage",
    response_model=GenerationResultModel,
    summary="Pay the generation fee from a wallet and generate an image",
)
async def reimage(
    wallet_address: str = Form(""),
    prompt: str = Form(""),
    image: Optional[UploadFile] = File(None),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if not wallet_address.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please connect your wallet first",
        )
    if not is_address(wallet_address.strip()):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid wallet address",
        )

    session = registry.get(wallet_address)
    if session.is_busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A generation is already in progress",
        )

    uploaded = await _read_upload(image)
    if uploaded is not None:
        try:
            session.attach_image(uploaded)
        except InputValidationError as exc:
            raise HTTPException(status_code=_status_for(exc), detail=exc.message) from exc
    else:
        session.clear_image()

    try:
        outcome = await session.submit(prompt)
    except FlowInProgressError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=exc.message) from exc

    if outcome.error is not None:
        raise HTTPException(status_code=_status_for(outcome.error), detail=str(outcome.error))
    return _to_result_model(outcome.result)


@app.get(
    "/api/history",
    response_model=HistoryResponse,
    summary="Recent generations for a wallet, newest first",
)
async def history(
    wallet_address: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = registry.find(wallet_address)
    items: List[GenerationResultModel] = []
    if session is not None:
        items = [_to_result_model(result) for result in session.history]
    return HistoryResponse(items=items)


@app.get(
    "/api/notifications",
    response_model=NotificationListResponse,
    summary="Notifications currently shown for a wallet",
)
async def notifications(
    wallet_address: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = registry.find(wallet_address)
    active = session.notifications if session is not None else []
    return NotificationListResponse(
        notifications=[
            NotificationModel(
                id=item.id,
                level=item.level.value,
                title=item.title,
                description=item.description,
                createdAt=item.created_at,
            )
            for item in active
        ]
    )


@app.get("/api/download", summary="Fetch one of the wallet's generated images as a file attachment")
async def download(
    wallet_address: str = Query(...),
    url: str = Query(...),
    filename: Optional[str] = Query(None),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = registry.find(wallet_address)
    if session is None or url not in {result.image_url for result in session.history}:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Image not found in this wallet's history",
        )

    settings = get_settings()
    try:
        downloaded = await fetch_download(
            url,
            filename,
            timeout=settings.download_timeout,
            max_bytes=settings.max_download_bytes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DownloadTooLargeError as exc:
        logger.warning("Download of %s refused: %s", url, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    except httpx.HTTPError as exc:
        logger.warning("Download of %s failed: %s", url, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to download image",
        ) from exc

    return Response(
        content=downloaded.data,
        media_type=downloaded.content_type,
        headers={"Content-Disposition": f'attachment; filename="{downloaded.filename}"'},
    )


__all__ = ["app"]


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    import uvicorn

    uvicorn.run("reimager.main:app", host="0.0.0.0", port=8000, reload=True, log_level=get_settings().log_level)
