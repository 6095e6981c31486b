"""Widget CRUD routes: saved dashboard locations."""

from fastapi import APIRouter, Depends

from dependencies import get_widget_store
from schemas import CreateWidgetRequest
from services.widgets import WidgetStore

router = APIRouter(prefix="/api/widgets", tags=["widgets"])


@router.get("")
async def list_widgets(store: WidgetStore = Depends(get_widget_store)) -> list[dict]:
    """All widgets, newest first."""
    return await store.list_all()


@router.post("", status_code=201)
async def create_widget(
    body: CreateWidgetRequest,
    store: WidgetStore = Depends(get_widget_store),
) -> dict:
    return await store.create(body.location)


@router.get("/{widget_id}")
async def get_widget(widget_id: str, store: WidgetStore = Depends(get_widget_store)) -> dict:
    return await store.get(widget_id)


@router.delete("/{widget_id}")
async def delete_widget(widget_id: str, store: WidgetStore = Depends(get_widget_store)) -> dict:
    deleted = await store.delete(widget_id)
    return {"message": "Widget deleted successfully", "deletedWidget": deleted}
