"""HTTP route definitions for the relay."""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from relay.schemas import (
    CameraTestResponse,
    CaptureResponse,
    CatalogError,
    ImageEntry,
    SensorDataResponse,
)
from services.camera import CameraGateway, build_default_camera
from services.catalog import ImageCatalog, build_default_catalog
from services.sensor_store import SensorStore, build_default_sensor_store

logger = logging.getLogger(__name__)

router = APIRouter()


def get_sensor_store() -> SensorStore:
    return build_default_sensor_store()


def get_camera() -> CameraGateway:
    return build_default_camera()


def get_catalog() -> ImageCatalog:
    return build_default_catalog()


@router.get(
    "/update",
    response_class=PlainTextResponse,
    summary="Device push of the current moisture value.",
)
async def update_reading(
    moisture: Optional[str] = Query(default=None),
    store: SensorStore = Depends(get_sensor_store),
) -> str:
    if moisture:
        store.push(moisture)
    return "OK"


@router.get(
    "/data",
    response_model=SensorDataResponse,
    summary="Latest moisture reading.",
)
async def read_data(store: SensorStore = Depends(get_sensor_store)) -> SensorDataResponse:
    reading = store.read()
    return SensorDataResponse(moisture=reading.moisture, last_update=reading.observed_at)


@router.get(
    "/capture",
    response_model=CaptureResponse,
    response_model_exclude_none=True,
    responses={500: {"model": CaptureResponse}},
    summary="Trigger a camera capture and store the image.",
)
async def capture(camera: CameraGateway = Depends(get_camera)) -> Union[CaptureResponse, JSONResponse]:
    logger.info("Capture requested")
    result = await camera.capture()
    body = CaptureResponse(success=result.success, message=result.message, filename=result.filename)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(exclude_none=True),
        )
    return body


@router.get(
    "/test-camera",
    response_model=CameraTestResponse,
    response_model_exclude_none=True,
    summary="Check whether the camera answers with HTTP 200.",
)
async def test_camera(camera: CameraGateway = Depends(get_camera)) -> CameraTestResponse:
    check = await camera.test_connection()
    return CameraTestResponse(
        success=check.reachable,
        message=check.message,
        status=check.status if check.reachable else None,
    )


@router.get(
    "/images",
    response_model=list[ImageEntry],
    responses={500: {"model": CatalogError}},
    summary="List captured images, newest first.",
)
async def list_images(
    catalog: ImageCatalog = Depends(get_catalog),
) -> Union[list[ImageEntry], JSONResponse]:
    try:
        images = catalog.list()
    except OSError as exc:
        logger.error("Failed to read captures directory", extra={"reason": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=CatalogError(error="Failed to read directory").model_dump(),
        )
    return [
        ImageEntry(filename=image.filename, path=image.relative_path, timestamp=image.captured_at)
        for image in images
    ]


@router.get(
    "/captures/{filename}",
    response_class=FileResponse,
    summary="Fetch the bytes of a stored capture.",
)
async def get_capture(
    filename: str,
    catalog: ImageCatalog = Depends(get_catalog),
) -> FileResponse:
    try:
        path = catalog.resolve(filename)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return FileResponse(path)


@router.get(
    "/test",
    response_class=PlainTextResponse,
    summary="Plain-text liveness check.",
)
async def server_test() -> str:
    return "Server is running!"


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
