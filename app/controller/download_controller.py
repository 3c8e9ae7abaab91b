from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, field_validator
from models.job import JobStatus, MediaFormat
from service.job_service import JobService
from service.platforms import SUPPORTED_PLATFORMS, validate_url
from utils.serializers import download_to_dict

router = APIRouter(tags=["Downloads"])

QUALITY_OPTIONS = ["best", "1080p", "720p", "480p", "360p", "240p"]
MAX_RECENT_LIMIT = 50


class UrlInput(BaseModel):
    url: str
    format: MediaFormat = MediaFormat.VIDEO
    quality: Optional[str] = None

    @field_validator("quality")
    @classmethod
    def check_quality(cls, value: Optional[str]) -> Optional[str]:
        if value and value not in QUALITY_OPTIONS:
            raise ValueError("Invalid quality option")
        return value or None


def get_job_service(request: Request) -> JobService:
    return request.app.state.job_service


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/ping", response_class=JSONResponse)
async def ping():
    return {"pong": True}


@router.get("/api/platforms")
async def platforms():
    return SUPPORTED_PLATFORMS


@router.get("/api/downloads")
async def recent_downloads(limit: int = 10, service: JobService = Depends(get_job_service)):
    limit = max(1, min(limit, MAX_RECENT_LIMIT))
    downloads = await service.get_recent_jobs(limit)
    return [download_to_dict(download) for download in downloads]


@router.post("/api/process")
async def process_url(body: UrlInput, service: JobService = Depends(get_job_service)):
    # 채널/프로필 URL 등은 작업을 만들기 전에 거절
    is_valid, error = validate_url(body.url)
    if not is_valid:
        return error_response(400, error)

    download = await service.create_job(body.url, body.format.value, body.quality)
    return download_to_dict(download)


@router.get("/api/downloads/{job_id}")
async def get_download(job_id: int, service: JobService = Depends(get_job_service)):
    if job_id <= 0:
        return error_response(400, "Invalid download ID")

    download = await service.get_job(job_id)
    if not download:
        return error_response(404, "Download not found")
    return download_to_dict(download)


@router.get("/api/download/{job_id}")
async def download_file(job_id: int, service: JobService = Depends(get_job_service)):
    if job_id <= 0:
        return error_response(400, "Invalid download ID")

    download = await service.get_job(job_id)
    if not download or download.status != JobStatus.COMPLETED.value or not download.filename:
        return error_response(404, "File not found or not ready")

    # 다운로드 디렉터리 밖의 파일은 제공하지 않음
    filepath = service.artifact_path(download)
    if filepath is None or not filepath.exists():
        return error_response(404, "File not found on disk")

    return FileResponse(path=filepath, filename=download.filename, media_type="application/octet-stream")


@router.delete("/api/downloads/{job_id}")
async def delete_download(job_id: int, service: JobService = Depends(get_job_service)):
    if job_id <= 0:
        return error_response(400, "Invalid download ID")

    if await service.delete_job(job_id):
        return {"success": True}
    return error_response(404, "Download not found")


@router.post("/api/downloads/{job_id}/retry")
async def retry_download(job_id: int, service: JobService = Depends(get_job_service)):
    if job_id <= 0:
        return error_response(400, "Invalid download ID")

    download = await service.retry_job(job_id)
    if download is None:
        return error_response(404, "Download not found")
    return download_to_dict(download)
