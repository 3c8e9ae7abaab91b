"""
yt-dlp 프로세스 실행/감시

stdout, stderr는 메모리에 모두 모은다. 미디어 데이터는 yt-dlp가 디스크에 직접 쓰므로
출력량은 로그와 info.json 정도로 작다.
"""

import asyncio
import logging
import os
import shutil
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import YTDLP_PATHS
from service.strategy import InvocationPlan

logger = logging.getLogger(__name__)

TOOL_NAME = "yt-dlp"
TERMINATE_GRACE_SECONDS = 5


class SupervisorError(Exception):
    """프로세스를 시작하지 못한 경우"""


class ToolNotFoundError(SupervisorError):
    pass


class ProcessSpawnError(SupervisorError):
    pass


@dataclass
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


def resolve_executable(candidates: Optional[list[str]] = None, name: str = TOOL_NAME) -> str:
    """
    후보 경로를 순서대로 확인하고, 없으면 PATH에서 찾는다.
    """
    for candidate in candidates if candidates is not None else YTDLP_PATHS:
        path = Path(candidate).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)

    found = shutil.which(name)
    if found:
        return found

    raise ToolNotFoundError(f"{name} executable not found")


async def _drain(stream: asyncio.StreamReader, chunks: list[bytes]):
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            break
        chunks.append(chunk)


def _signal(process: asyncio.subprocess.Process, sig: int):
    # ffmpeg 같은 자식 프로세스까지 함께 종료
    if sys.platform == "win32":
        process.terminate()
    else:
        os.killpg(process.pid, sig)


async def _terminate(process: asyncio.subprocess.Process):
    try:
        _signal(process, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        try:
            _signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        except ProcessLookupError:
            return
        await process.wait()


class ProcessSupervisor:
    def __init__(self, executable: Optional[str] = None, candidates: Optional[list[str]] = None):
        self._executable = executable
        self._candidates = candidates

    @property
    def executable(self) -> str:
        # 매 실행마다 찾지 않도록 처음 찾은 경로를 기억
        if self._executable is None:
            self._executable = resolve_executable(self._candidates)
        return self._executable

    async def run(self, plan: InvocationPlan, timeout: Optional[float] = None) -> ProcessResult:
        executable = self.executable
        command = [executable, *plan.args]
        logger.info(f"Command: {executable} {plan.command_line}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(f"{executable} not found") from e
        except OSError as e:
            raise ProcessSpawnError(str(e)) from e

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        readers = asyncio.gather(
            _drain(process.stdout, stdout_chunks),
            _drain(process.stderr, stderr_chunks),
        )

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout if timeout else None)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"{TOOL_NAME} (PID {process.pid}) exceeded {timeout}s, terminating")
            await _terminate(process)
            try:
                await asyncio.wait_for(readers, timeout=TERMINATE_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Output streams still open after termination, giving up on them")
        except asyncio.CancelledError:
            # 작업이 취소되면 yt-dlp 프로세스 그룹도 함께 종료
            logger.warning(f"{TOOL_NAME} (PID {process.pid}) cancelled, terminating")
            await _terminate(process)
            readers.cancel()
            await asyncio.gather(readers, return_exceptions=True)
            raise
        else:
            await readers

        result = ProcessResult(
            exit_code=process.returncode,
            stdout=b"".join(stdout_chunks).decode("utf-8", "replace"),
            stderr=b"".join(stderr_chunks).decode("utf-8", "replace"),
            timed_out=timed_out,
        )
        logger.info(f"{TOOL_NAME} process closed with code: {result.exit_code}")
        logger.debug(f"stdout: {result.stdout}")
        logger.debug(f"stderr: {result.stderr}")
        return result
