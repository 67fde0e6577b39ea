"""
썸네일 탐지기
"; thumbnail begin ... ; thumbnail end" 블록에서 첫 번째 PNG 미리보기만 캡처
"""
import base64
import re
from dataclasses import dataclass
from typing import Optional

from .tokens import Span


THUMBNAIL_BEGIN = "thumbnail begin"
THUMBNAIL_END = "thumbnail end"

# Base64 문자 외 (주석 마커, 공백, 개행) 제거용
_NON_BASE64_RE = re.compile(rb"[^A-Za-z0-9+/=]+")


def reflow(payload: bytes) -> bytes:
    """
    Base64 페이로드를 한 줄로 재구성

    각 라인 앞의 "; " 와 개행을 버리고 Base64 문자만 순서대로 이어 붙인다.
    """
    return _NON_BASE64_RE.sub(b"", payload)


@dataclass
class ThumbnailRecord:
    """캡처된 썸네일 정보"""
    payload: Optional[Span] = None         # begin 다음 라인 ~ end 라인 직전
    original_block: Optional[Span] = None  # begin 라인 ~ end 라인 개행까지 (제거 옵션)
    removed_lines: int = 0                 # 제거되는 라인 수

    def has_payload(self) -> bool:
        return self.payload is not None and self.payload.is_set()

    def reflowed(self, buffer: bytes) -> bytes:
        if not self.has_payload():
            return b""
        return reflow(self.payload.slice(buffer))

    def decode(self, buffer: bytes) -> bytes:
        """PNG 바이너리 반환 (페이로드가 없으면 빈 bytes)"""
        data = self.reflowed(buffer)
        if not data:
            return b""
        return base64.b64decode(data)


class ThumbnailLocator:
    """
    첫 번째 썸네일 블록의 오프셋 추적

    제거 옵션이 켜져 있으면 마커와 개행을 포함한 원본 블록 전체를 기록한다.
    """

    def __init__(self, remove_original: bool = False):
        self.remove_original = remove_original
        self.record = ThumbnailRecord()
        self._payload_start: Optional[int] = None
        self._block_start: Optional[int] = None

    @property
    def captured(self) -> bool:
        """첫 썸네일 페이로드가 이미 시작되었는지"""
        return self._payload_start is not None

    def begin(self, line_start: int):
        """begin 마커 인식 (begin 라인 시작 오프셋)"""
        if self.remove_original and self._block_start is None:
            self._block_start = line_start
            self.record.removed_lines = 1

    def on_body_newline(self, pos: int):
        """썸네일 본문 안의 개행. 첫 개행 다음부터 페이로드 시작"""
        if self.remove_original:
            self.record.removed_lines += 1
        if self._payload_start is None:
            self._payload_start = pos + 1

    def end(self, line_start: int, pos: int):
        """end 마커 인식 (현재 라인 시작, 마커 마지막 문자 위치)"""
        self.record.payload = Span(self._payload_start, line_start - self._payload_start)
        if self.remove_original and self._block_start is not None:
            self.record.original_block = Span(self._block_start, pos - self._block_start)

    def finish_tail(self, pos: int):
        """end 라인의 개행까지 제거 구간 확장"""
        if self._block_start is not None:
            self.record.original_block = Span(self._block_start, pos + 1 - self._block_start)

    def finish_at_eof(self, size: int):
        """개행 없이 파일이 끝난 end 라인. 버퍼 끝까지 제거"""
        if self._block_start is not None:
            self.record.original_block = Span(self._block_start, size - self._block_start)
            # 마지막 라인에는 개행이 없음
            self.record.removed_lines -= 1
