from fastapi import APIRouter

from xray_report.api import analyze, images, pages, reports, upload

api_router = APIRouter()
api_router.include_router(upload.router)
api_router.include_router(analyze.router)
api_router.include_router(images.router)
api_router.include_router(reports.router)
api_router.include_router(pages.router)
