import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from clipprompt.models.schemas import Video, VideoStatus

logger = logging.getLogger(__name__)


class VideoNotFoundError(RuntimeError):
    pass


class VideoRepository(Protocol):
    """Storage boundary for videos. Backing stores implement these four calls."""

    def get(self, video_id: str) -> Optional[Video]:
        ...

    def list_by_owner(self, owner_id: str) -> List[Video]:
        ...

    def add(self, video: Video) -> Video:
        ...

    def update(self, video: Video) -> Video:
        ...


class InMemoryVideoRepository:
    def __init__(self) -> None:
        self._videos: Dict[str, Video] = {}

    def get(self, video_id: str) -> Optional[Video]:
        return self._videos.get(video_id)

    def list_by_owner(self, owner_id: str) -> List[Video]:
        videos = [video for video in self._videos.values() if video.owner_id == owner_id]
        return sorted(videos, key=lambda video: video.created_date, reverse=True)

    def add(self, video: Video) -> Video:
        self._videos[video.id] = video
        return video

    def update(self, video: Video) -> Video:
        if video.id not in self._videos:
            raise VideoNotFoundError(f"Video {video.id} not found")
        self._videos[video.id] = video
        return video


_repository: VideoRepository = InMemoryVideoRepository()


def get_video_repository() -> VideoRepository:
    return _repository


def register_video(
    owner_id: str,
    original_video_file: str,
    video_title: str,
    video_description: Optional[str] = None,
) -> Video:
    video = Video(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        original_video_file=original_video_file,
        video_title=video_title,
        video_description=video_description,
        created_date=datetime.now(timezone.utc),
        status=VideoStatus.UPLOADED,
    )
    get_video_repository().add(video)
    logger.info("Registered video %s for user %s", video.id, owner_id)
    return video


def get_owned_video(video_id: str, owner_id: str) -> Video:
    video = get_video_repository().get(video_id)
    if video is None or video.owner_id != owner_id:
        raise VideoNotFoundError(f"Video {video_id} not found")
    return video
