from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from models.moisture import MOISTURE_MAX
from services.catalog import ImageCatalog, build_default_catalog
from services.sensor_store import SensorStore, build_default_sensor_store


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

GALLERY_LIMIT = 24


def get_catalog() -> ImageCatalog:
    return build_default_catalog()


def get_sensor_store() -> SensorStore:
    return build_default_sensor_store()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    catalog: ImageCatalog = Depends(get_catalog),
    store: SensorStore = Depends(get_sensor_store),
) -> HTMLResponse:
    try:
        images = catalog.list()[:GALLERY_LIMIT]
    except OSError:
        images = []
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "reading": store.read(),
            "moisture_max": MOISTURE_MAX,
            "images": images,
        },
    )
