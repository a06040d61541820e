from fastapi import APIRouter

from rhmeter.web.routes.downloads import router as downloads_router
from rhmeter.web.routes.pages import router as pages_router

ui_router = APIRouter(prefix="/ui", include_in_schema=False)
ui_router.include_router(pages_router)
ui_router.include_router(downloads_router)
