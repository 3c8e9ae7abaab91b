import logging
from enum import Enum
from typing import Any, Optional
from sqlalchemy import inspect, select, update as sql_update
from sqlalchemy.ext.asyncio import async_sessionmaker
from models.job import Download, JobStatus, ALLOWED_TRANSITIONS, IMMUTABLE_FIELDS
from database import async_session, create_tables

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100

# ORM 속성 이름 (metadata 컬럼은 meta)
FIELD_NAMES = {attr.key for attr in inspect(Download).column_attrs}


class ImmutableFieldError(ValueError):
    """생성 이후 바뀔 수 없는 필드를 수정하려고 할 때"""


class InvalidStatusTransition(ValueError):
    """허용되지 않은 상태 전이 (예: completed -> processing)"""


def _plain(value: Any) -> Any:
    # JobStatus 같은 str Enum은 값으로 저장
    if isinstance(value, Enum):
        return value.value
    return value


class JobStore:
    """
    다운로드 작업 레코드 저장소

    모든 메서드는 각자 세션을 열고 닫으며, 반환되는 Download 객체는
    세션에서 분리된(detached) 상태다.
    """

    def __init__(self, session_factory: async_sessionmaker = None, bind=None):
        self._session_factory = session_factory or async_session
        self._bind = bind

    async def create_tables(self):
        await create_tables(self._bind)

    async def create(self, fields: dict) -> Download:
        values = {key: _plain(value) for key, value in fields.items()}
        values.setdefault("status", JobStatus.PENDING.value)

        async with self._session_factory() as session:
            download = Download(**values)
            session.add(download)
            await session.commit()
            await session.refresh(download)

        logger.info(f"Created download record {download.id} for {download.platform}: {download.url}")
        return download

    async def get(self, job_id: int) -> Optional[Download]:
        async with self._session_factory() as session:
            return await session.get(Download, job_id)

    async def update(self, job_id: int, fields: dict) -> Optional[Download]:
        """
        부분 갱신. 레코드가 없으면 아무것도 하지 않고 None 반환
        빈 patch는 레코드를 그대로 돌려준다.
        """
        blocked = IMMUTABLE_FIELDS.intersection(fields)
        if blocked:
            raise ImmutableFieldError(f"Cannot update immutable field(s): {', '.join(sorted(blocked))}")

        async with self._session_factory() as session:
            download = await session.get(Download, job_id)
            if download is None:
                logger.debug(f"Attempted to update non-existent download {job_id}")
                return None

            if not fields:
                return download

            values = {key: _plain(value) for key, value in fields.items()}
            unknown = set(values) - FIELD_NAMES
            if unknown:
                raise AttributeError(f"Download has no field(s): {', '.join(sorted(unknown))}")

            old_status = download.status
            new_status = values.get("status", old_status)
            if new_status != old_status and new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
                raise InvalidStatusTransition(
                    f"Download {job_id}: {old_status} -> {new_status} is not allowed"
                )

            for key, value in values.items():
                setattr(download, key, value)
            await session.commit()

        if new_status != old_status:
            logger.info(f"Download {job_id} status changed: {old_status} -> {new_status}")
        return download

    async def list_recent(self, limit: int = 10) -> list[Download]:
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        async with self._session_factory() as session:
            result = await session.execute(
                select(Download)
                .order_by(Download.created_at.desc(), Download.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def delete(self, job_id: int) -> bool:
        async with self._session_factory() as session:
            download = await session.get(Download, job_id)
            if download is None:
                return False
            await session.delete(download)
            await session.commit()

        logger.info(f"Deleted download record {job_id}")
        return True

    async def fail_interrupted(self, message: str) -> int:
        """이전 프로세스가 남긴 processing 작업을 failed로 정리. 변경된 개수 반환"""
        async with self._session_factory() as session:
            result = await session.execute(
                sql_update(Download)
                .where(Download.status.in_([JobStatus.PENDING.value, JobStatus.PROCESSING.value]))
                .values(status=JobStatus.FAILED.value, error_message=message)
            )
            await session.commit()
            return result.rowcount or 0
