"""
파일 내용 소스/싱크
전체 파일을 한 번에 읽고, 같은 경로를 잘라내기(truncate) 모드로 다시 써서 교체한다
"""
import os
import logging
from typing import Iterable

from .errors import (
    FileCreateError,
    FileNotFound,
    FileOpenError,
    FileReadError,
    FileWriteError,
    OutOfMemory,
)

logger = logging.getLogger(__name__)


class LocalFilePort:
    """
    로컬 파일 입출력

    쓰기 단계는 트랜잭션이 아니다: 파일을 먼저 잘라낸 뒤 내용을 쓰므로
    쓰기 도중 실패하면 파일이 잘린 상태로 남을 수 있다.
    """

    def __init__(self, path: str):
        self.path = path

    def read(self) -> bytes:
        """파일 전체를 메모리로 읽기"""
        if not os.path.exists(self.path):
            raise FileNotFound(self.path)
        try:
            f = open(self.path, "rb")
        except OSError as e:
            raise FileOpenError(self.path, str(e)) from e
        try:
            with f:
                data = f.read()
        except MemoryError as e:
            raise OutOfMemory(self.path) from e
        except OSError as e:
            raise FileReadError(self.path, str(e)) from e
        logger.debug(f"[FilePort] Read {len(data)} bytes from {self.path}")
        return data

    def write(self, chunks: Iterable[bytes]):
        """같은 경로를 잘라내고 chunks 순서대로 기록"""
        try:
            f = open(self.path, "wb")
        except OSError as e:
            raise FileCreateError(self.path, str(e)) from e
        written = 0
        try:
            with f:
                for chunk in chunks:
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except OSError as e:
            raise FileWriteError(self.path, str(e)) from e
        logger.debug(f"[FilePort] Wrote {written} bytes to {self.path}")
