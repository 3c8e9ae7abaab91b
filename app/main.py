import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from config import LOG_LEVEL
from controller import download_controller
from logging_config import setup_logging
from service.job_service import JobService

logger = logging.getLogger(__name__)


def create_app(job_service: JobService = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 시작 시 테이블 생성 및 중단된 작업 정리
        await app.state.job_service.start()
        logger.info(f"Download directory: {app.state.job_service.output_dir.resolve()}")
        yield
        # 종료 시 큐 워커와 백그라운드 작업 정리
        await app.state.job_service.stop()

    app = FastAPI(title="Media Downloader", lifespan=lifespan)
    app.state.job_service = job_service or JobService()

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # 첫 번째 검증 오류 메시지만 {"error": ...} 형태로 반환
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    app.include_router(download_controller.router)
    return app


setup_logging(LOG_LEVEL)
app = create_app()
