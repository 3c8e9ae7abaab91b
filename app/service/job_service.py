import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

from config import (
    COOKIES_FILE,
    DOWNLOAD_DIR,
    FS_SETTLE_DELAY_SECONDS,
    MAX_CONCURRENT_DOWNLOADS,
    PROCESS_TIMEOUT_SECONDS,
)
from models.job import Download, JobStatus
from service.artifact_locator import locate, read_sidecar
from service.direct_download import DirectDownloadError, download_direct_image
from service.error_classifier import Failure, FailureCategory, classify, make_failure
from service.job_store import JobStore
from service.platforms import detect_platform, is_direct_media_url
from service.process_supervisor import ProcessSupervisor, SupervisorError, ToolNotFoundError
from service.rate_limiter import SerializedDispatchQueue
from service.strategy import select_strategy

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Download was interrupted by a server restart. Please try again."


class JobService:
    """
    URL 하나를 백그라운드 다운로드 작업으로 만들어 끝까지 관리한다.

    create_job()은 레코드를 processing 상태로 만든 직후 반환하고, 나머지는
    process_job() 태스크가 처리한다. 작업 상태는 전부 JobStore를 통해서만 확인한다.
    """

    def __init__(
        self,
        store: JobStore = None,
        output_dir: Path = DOWNLOAD_DIR,
        supervisor: ProcessSupervisor = None,
        queue: SerializedDispatchQueue = None,
        cookies_file: Path = COOKIES_FILE,
        timeout: float = PROCESS_TIMEOUT_SECONDS,
        max_concurrent: int = MAX_CONCURRENT_DOWNLOADS,
        settle_delay: float = FS_SETTLE_DELAY_SECONDS,
        http_client=None,
    ):
        self.store = store or JobStore()
        self.output_dir = Path(output_dir)
        self.supervisor = supervisor or ProcessSupervisor()
        self.queue = queue or SerializedDispatchQueue(notify=self._set_waiting_message)
        self.cookies_file = cookies_file
        self.timeout = timeout or None
        self.settle_delay = settle_delay
        self._http_client = http_client
        # 인스타그램 외 플랫폼의 동시 실행 수 제한
        self._slots = asyncio.Semaphore(max(1, max_concurrent))
        self._tasks: set[asyncio.Task] = set()

    async def start(self):
        self.output_dir.mkdir(parents=True, exist_ok=True)
        await self.store.create_tables()

        # 이전 실행에서 끝나지 못한 작업 정리
        interrupted = await self.store.fail_interrupted(INTERRUPTED_MESSAGE)
        if interrupted:
            logger.warning(f"Marked {interrupted} interrupted download(s) as failed")

    async def stop(self):
        await self.queue.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_idle(self):
        """실행 중인 백그라운드 작업이 모두 끝날 때까지 대기"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def create_job(self, url: str, format: str, quality: Optional[str] = None) -> Download:
        platform = detect_platform(url)

        # 레코드는 처음부터 processing 상태로 생성
        download = await self.store.create({
            "url": url,
            "format": format,
            "quality": quality,
            "platform": platform,
            "status": JobStatus.PROCESSING,
            "title": f"{platform} Media",
        })

        # 백그라운드 작업 시작
        task = asyncio.create_task(
            self.process_job(download.id, url, platform, format, quality),
            name=f"download-{download.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

        return download

    async def submit(self, url: str, format: str, quality: Optional[str] = None) -> int:
        download = await self.create_job(url, format, quality)
        return download.id

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background processing failed for {task.get_name()}", exc_info=error)

    async def process_job(self, job_id: int, url: str, platform: str, format: str, quality: Optional[str]):
        # 결과 파일 이름에 들어가는 고유 토큰
        token = uuid.uuid4().hex
        logger.info(f"Starting processing for download {job_id}: {url}")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)

            if is_direct_media_url(url):
                await self._process_direct(job_id, url, token)
                return

            plan = select_strategy(url, platform, format, quality, token, self.output_dir, self.cookies_file)

            if plan.serialized:
                logger.info(f"Queuing {platform} media for processing: {url}")
                await self.queue.enqueue(job_id)
                logger.info(f"Now processing {platform} media: {url}")
                result = await self.supervisor.run(plan, timeout=self.timeout)
            else:
                async with self._slots:
                    result = await self.supervisor.run(plan, timeout=self.timeout)

            # 종료 코드가 0이어도 stderr에 실패 메시지가 있을 수 있음
            outcome = classify(result.exit_code, result.stdout, result.stderr, platform, result.timed_out)
            if isinstance(outcome, Failure):
                await self._fail(job_id, outcome)
                return

            await self._complete_from_output(job_id, platform, token, format)

        except ToolNotFoundError as e:
            logger.error(f"Download {job_id}: {e}")
            await self._fail(job_id, make_failure(FailureCategory.TOOL_NOT_FOUND, platform))
        except SupervisorError as e:
            logger.error(f"Download {job_id}: spawn error: {e}")
            await self._fail(job_id, make_failure(FailureCategory.SPAWN_FAILED, platform, str(e)))
        except DirectDownloadError as e:
            logger.error(f"Direct image download failed for {url}: {e}")
            await self._fail(job_id, make_failure(FailureCategory.DIRECT_DOWNLOAD_FAILED, platform, str(e)))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Process media error for download {job_id}")
            await self._fail(job_id, make_failure(FailureCategory.INTERNAL_ERROR, platform, str(e) or type(e).__name__))

    async def _process_direct(self, job_id: int, url: str, token: str):
        result = await download_direct_image(url, token, self.output_dir, client=self._http_client)
        await self._complete(
            job_id,
            filename=result.path.name,
            file_size=result.file_size,
            title="Direct Image Download",
            metadata=result.metadata(url),
        )

    async def _complete_from_output(self, job_id: int, platform: str, token: str, format: str):
        # 파일 시스템 반영을 잠깐 기다림
        await asyncio.sleep(self.settle_delay)

        artifact = await asyncio.to_thread(locate, self.output_dir, token, format=format)
        if artifact is None:
            logger.error(f"Download {job_id}: no downloaded file found despite successful exit code")
            await self._fail(job_id, make_failure(FailureCategory.NO_ARTIFACT, platform))
            return

        # info.json은 있으면 쓰고, 못 읽으면 기본 제목 사용
        metadata = await asyncio.to_thread(read_sidecar, self.output_dir, token)
        title = (metadata or {}).get("title") or f"Downloaded from {platform}"

        await self._complete(
            job_id,
            filename=artifact.name,
            file_size=artifact.stat().st_size,
            title=title,
            metadata=metadata or {},
        )

    async def _update(self, job_id: int, fields: dict) -> Optional[Download]:
        download = await self.store.update(job_id, fields)
        if download is None:
            # 처리 도중 사용자가 삭제한 경우
            logger.info(f"Download {job_id} no longer exists, skipping update")
        return download

    async def _complete(self, job_id: int, filename: str, file_size: int, title: str, metadata: dict):
        await self._update(job_id, {
            "status": JobStatus.COMPLETED,
            "title": title,
            "filename": filename,
            "file_size": file_size,
            "meta": metadata,
            "download_url": f"/api/download/{job_id}",
            "error_message": None,
        })
        logger.info(f"Download {job_id} completed: {filename} ({file_size} bytes)")

    async def _fail(self, job_id: int, failure: Failure):
        logger.warning(f"Download {job_id} failed [{failure.category.value}]: {failure.message}")
        await self._update(job_id, {
            "status": JobStatus.FAILED,
            "error_message": failure.message,
        })

    async def _set_waiting_message(self, job_id: int, message: Optional[str]):
        await self._update(job_id, {"status": JobStatus.PROCESSING, "error_message": message})

    async def get_job(self, job_id: int) -> Optional[Download]:
        return await self.store.get(job_id)

    async def get_recent_jobs(self, limit: int = 10) -> list[Download]:
        return await self.store.list_recent(limit)

    def artifact_path(self, download: Download) -> Optional[Path]:
        """완료된 작업의 파일 경로. 다운로드 디렉터리 밖을 가리키면 None"""
        if not download.filename:
            return None
        root = self.output_dir.resolve()
        path = (root / download.filename).resolve()
        if root not in path.parents:
            return None
        return path

    async def delete_job(self, job_id: int) -> bool:
        download = await self.store.get(job_id)

        # 파일 삭제 실패해도 레코드는 삭제
        if download is not None:
            path = self.artifact_path(download)
            if path is not None and path.exists():
                try:
                    path.unlink()
                    logger.info(f"Deleted file: {download.filename}")
                except OSError as e:
                    logger.error(f"Failed to delete file {download.filename}: {e}")

        return await self.store.delete(job_id)

    async def retry_job(self, job_id: int) -> Optional[Download]:
        """같은 URL/포맷/화질로 새 작업을 만든다"""
        old = await self.store.get(job_id)
        if old is None:
            return None
        return await self.create_job(old.url, old.format, old.quality)
