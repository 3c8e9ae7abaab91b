"""Shared test fixtures."""

import asyncio
import json
from pathlib import Path
from typing import Callable, Optional

import pytest
import pytest_asyncio

from database import build_engine, build_session_factory
from service.job_store import JobStore
from service.process_supervisor import ProcessResult
from service.strategy import InvocationPlan


@pytest_asyncio.fixture
async def store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}", echo=False)
    job_store = JobStore(build_session_factory(engine), bind=engine)
    await job_store.create_tables()
    yield job_store
    await engine.dispose()


@pytest.fixture
def downloads_dir(tmp_path):
    path = tmp_path / "downloads"
    path.mkdir()
    return path


def write_output(plan: InvocationPlan, title: str = "My Video", ext: str = "mp4",
                 content: bytes = b"data", info: Optional[dict] = None) -> Path:
    """yt-dlp가 출력 템플릿대로 파일을 쓴 것처럼 흉내"""
    base = plan.output_template.replace("%(title)s", title)
    path = Path(base.replace("%(ext)s", ext))
    path.write_bytes(content)
    if info is not None:
        Path(base.replace("%(ext)s", "info.json")).write_text(json.dumps(info), encoding="utf-8")
    return path


class FakeSupervisor:
    """ProcessSupervisor 대신 handler(plan)의 결과를 돌려준다"""

    def __init__(self, handler: Callable[[InvocationPlan], ProcessResult] = None):
        self.handler = handler or (lambda plan: ProcessResult(exit_code=0, stdout="", stderr=""))
        self.plans: list[InvocationPlan] = []
        self.timeouts: list = []
        self.release: Optional[asyncio.Event] = None

    async def run(self, plan: InvocationPlan, timeout=None) -> ProcessResult:
        self.plans.append(plan)
        self.timeouts.append(timeout)
        if self.release is not None:
            await self.release.wait()
        result = self.handler(plan)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClock:
    """시계와 sleep을 함께 흉내. sleep하면 시간이 그만큼 흐른다."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)
