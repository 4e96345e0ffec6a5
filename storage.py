# storage.py - Uploaded media storage utilities
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from errors import ValidationError, NotFoundError
import logging

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/uploads/"
ALLOWED_MEDIA_TYPES = ("image/", "video/")


@dataclass
class MediaFile:
    filename: str
    content_type: str
    content: bytes


class MediaStore:
    """
    Filesystem-backed area for report photos and videos.

    Reports reference stored files as ordered "/uploads/<name>" paths.
    """

    def __init__(self, upload_dir: str, max_files: int = 5, max_bytes: int = 10 * 1024 * 1024):
        self.root = Path(upload_dir)
        self.max_files = max_files
        self.max_bytes = max_bytes

    def check_count(self, count: int) -> None:
        if count > self.max_files:
            raise ValidationError(f"At most {self.max_files} media files may be attached")

    def validate(self, files: List[MediaFile]) -> None:
        """Reject the whole set before anything is written"""
        self.check_count(len(files))
        for media in files:
            if not (media.content_type or "").startswith(ALLOWED_MEDIA_TYPES):
                raise ValidationError("Only image and video files are allowed")
            if len(media.content) > self.max_bytes:
                raise ValidationError(f"File {media.filename} exceeds the {self.max_bytes} byte limit")

    def save_all(self, files: List[MediaFile]) -> List[str]:
        """
        Store every file or none of them.

        Args:
            files: Uploaded media in submission order

        Returns:
            list: Media URLs in the same order
        """
        self.validate(files)

        saved: List[str] = []
        try:
            for media in files:
                saved.append(self._write(media))
        except OSError as e:
            logger.error(f"Upload failed after {len(saved)} of {len(files)} files: {e}")
            self.discard(saved)
            raise
        return saved

    def _write(self, media: MediaFile) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        ext = Path(media.filename or "").suffix.lower()
        file_name = f"{uuid.uuid4().hex}{ext}"
        with open(self.root / file_name, "xb") as fh:
            fh.write(media.content)
        logger.info(f"Media stored: {file_name}")
        return MEDIA_URL_PREFIX + file_name

    def discard(self, media_urls: List[str]) -> None:
        """Remove stored files; missing files are ignored"""
        for url in media_urls:
            path = self.path_for(url)
            if path is None:
                continue
            try:
                os.remove(path)
                logger.info(f"Media removed: {path.name}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove media {path.name}: {e}")

    def path_for(self, media_url: str) -> Optional[Path]:
        """Map a media URL or bare file name to its path inside the upload area"""
        name = media_url[len(MEDIA_URL_PREFIX):] if media_url.startswith(MEDIA_URL_PREFIX) else media_url
        if not name or name != os.path.basename(name) or name in (".", ".."):
            return None
        return self.root / name

    def open(self, file_name: str) -> Path:
        path = self.path_for(file_name)
        if path is None or not path.is_file():
            raise NotFoundError("File not found")
        return path

    @staticmethod
    def url_for(file_name: str) -> str:
        return MEDIA_URL_PREFIX + file_name
