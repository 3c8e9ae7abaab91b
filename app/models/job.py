from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from enum import Enum

Base = declarative_base()


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MediaFormat(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


# 허용되는 상태 전이 (같은 상태로의 갱신은 항상 허용)
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING.value: {JobStatus.PROCESSING.value, JobStatus.FAILED.value},
    JobStatus.PROCESSING.value: {JobStatus.COMPLETED.value, JobStatus.FAILED.value},
    JobStatus.COMPLETED.value: set(),
    JobStatus.FAILED.value: set(),
}

# 생성 이후 변경할 수 없는 필드
IMMUTABLE_FIELDS = {"id", "url", "format", "quality", "platform", "created_at"}


class Download(Base):
    __tablename__ = "downloads"
    # 삭제된 id가 재사용되지 않도록 AUTOINCREMENT 사용
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False)
    title = Column(Text, nullable=True)
    platform = Column(String(50), nullable=False)  # YouTube, Instagram, ...
    format = Column(String(10), nullable=False)  # video, audio, image
    quality = Column(String(10), nullable=True)  # best, 1080p, 720p, ...
    filename = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    download_url = Column(String(255), nullable=True)
    # "metadata"는 declarative에서 예약된 이름이라 속성명은 meta
    meta = Column("metadata", JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
