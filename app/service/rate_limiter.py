"""
요청 제한이 심한 플랫폼(인스타그램)용 직렬 디스패치 큐

모든 작업은 FIFO로 한 번에 하나씩 내보내며, 연속된 두 작업 사이에는 최소 min_delay초의
간격을 둔다. 상태(대기열, 마지막 디스패치 시각, 워커)는 이 객체만 가지고 있고
외부에서는 enqueue()로만 접근한다.
"""

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Optional

from config import RATE_LIMIT_DELAY_SECONDS, QUEUE_ITEM_DELAY_SECONDS

logger = logging.getLogger(__name__)

# (job_id, 안내 메시지 또는 None) -> 작업 레코드에 대기 메시지 기록/삭제
WaitNotifier = Callable[[int, Optional[str]], Awaitable[None]]


class SerializedDispatchQueue:
    def __init__(
        self,
        notify: Optional[WaitNotifier] = None,
        platform: str = "Instagram",
        min_delay: float = RATE_LIMIT_DELAY_SECONDS,
        item_delay: float = QUEUE_ITEM_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._notify = notify
        self._platform = platform
        self._min_delay = min_delay
        self._item_delay = item_delay
        self._clock = clock
        self._sleep = sleep
        self._mailbox: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._last_dispatch: Optional[float] = None

    @property
    def pending(self) -> int:
        return self._mailbox.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None

    def enqueue(self, job_id: int) -> asyncio.Future:
        """
        작업을 대기열에 넣고, 이 작업이 실행될 차례가 되면 완료되는 Future를 반환
        """
        future = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((job_id, future))
        logger.info(f"Queued {self._platform} job {job_id} (queue size: {self._mailbox.qsize()})")

        # 워커가 이미 돌고 있으면 그 워커가 처리한다
        if self._worker is None:
            self._worker = asyncio.create_task(self._drain())
        return future

    async def stop(self):
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        while not self._mailbox.empty():
            _, future = self._mailbox.get_nowait()
            if not future.done():
                future.cancel()

    async def _set_message(self, job_id: int, message: Optional[str]):
        if self._notify is None:
            return
        try:
            await self._notify(job_id, message)
        except Exception:
            # 안내 메시지 실패 때문에 큐가 멈추면 안 됨
            logger.exception(f"Failed to update waiting message for job {job_id}")

    async def _drain(self):
        future = None
        try:
            while not self._mailbox.empty():
                job_id, future = self._mailbox.get_nowait()
                if future.cancelled():
                    continue

                if self._last_dispatch is not None:
                    wait = self._min_delay - (self._clock() - self._last_dispatch)
                    if wait > 0:
                        seconds = math.ceil(wait)
                        logger.info(f"{self._platform} rate limiting: waiting {seconds} seconds")
                        await self._set_message(
                            job_id,
                            f"Waiting {seconds} seconds to avoid {self._platform} rate limiting...",
                        )
                        await self._sleep(wait)
                        await self._set_message(job_id, None)

                self._last_dispatch = self._clock()
                if not future.done():
                    future.set_result(self._last_dispatch)

                await self._sleep(self._item_delay)
        except asyncio.CancelledError:
            # 꺼내 놓고 아직 내보내지 못한 작업도 취소
            if future is not None and not future.done():
                future.cancel()
            raise
        finally:
            if self._worker is asyncio.current_task():
                self._worker = None
