"""
G-code 단일 패스 어휘 상태 기계

입력 버퍼를 바이트 단위로 한 번만 훑으면서
- G0/G1/G90/G91 명령을 디코딩해 위치/바운딩 박스 추적기에 전달
- "; key = value" 주석에서 메타데이터 스팬 추출
- 썸네일 블록 위치 탐지
를 동시에 수행한다.

상태 전이는 transition(state, ch, pos, ctx) 한 함수로 표현되며,
파일 I/O 없이 바이트열만으로 테스트할 수 있다.
"""
from typing import Callable, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging

from .tokens import Span, parse_float, parse_uint
from .tracker import MoveParams, PositionTracker
from .metadata import MetadataExtractor, MetadataKey, match_key
from .thumbnail import THUMBNAIL_BEGIN, THUMBNAIL_END, ThumbnailLocator, ThumbnailRecord

logger = logging.getLogger(__name__)


PROCESSED_MARKER = "post-processed by sm2pspp"
LAYER_CHANGE_MARKER = "LAYER_CHANGE"

# C isspace() 와 동일한 집합 (latin-1 의 \x85, \xa0 제외)
WHITESPACE = frozenset(" \t\n\v\f\r")


class ScanState(str, Enum):
    LINE_START = "line_start"
    SEEK_LINE_START = "seek_line_start"    # 인식하지 못한 라인의 나머지 건너뛰기
    GCODE_WORD = "gcode_word"              # G 명령과 파라미터
    COMMENT = "comment"
    PARAMETER_VALUE = "parameter_value"    # 인식된 key=value 의 값
    THUMBNAIL_BODY = "thumbnail_body"
    THUMBNAIL_TAIL = "thumbnail_tail"      # 원본 썸네일 제거 시 end 라인 소비


class TokenRole(str, Enum):
    """GCODE_WORD 상태에서 현재 숫자 토큰의 역할"""
    CODE = "G"
    X = "X"
    Y = "Y"
    Z = "Z"
    E = "E"
    UNKNOWN = "?"


_PARAM_ROLES = {
    "X": TokenRole.X,
    "Y": TokenRole.Y,
    "Z": TokenRole.Z,
    "E": TokenRole.E,
}


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


@dataclass
class ScanContext:
    """스캔 중 변경되는 모든 상태"""
    source: str
    remove_original_thumbnail: bool = False
    tracker: PositionTracker = field(default_factory=PositionTracker)
    metadata: MetadataExtractor = field(default_factory=MetadataExtractor)
    thumbnail: Optional[ThumbnailLocator] = None

    # 현재 토큰 (주석 단어 또는 숫자)
    token_start: Optional[int] = None
    token_length: int = 0

    # G 명령 디코딩
    role: TokenRole = TokenRole.UNKNOWN
    code: Optional[int] = None
    params: MoveParams = field(default_factory=MoveParams)

    # key=value 값 캡처
    value_key: Optional[MetadataKey] = None
    value_start: Optional[int] = None
    value_end: int = 0

    line_nr: int = 1
    line_start: int = 0
    already_processed: bool = False

    def __post_init__(self):
        if self.thumbnail is None:
            self.thumbnail = ThumbnailLocator(self.remove_original_thumbnail)

    def reset_token(self, start: Optional[int] = None):
        self.token_start = start
        self.token_length = 0

    def token(self) -> str:
        if self.token_start is None:
            return ""
        return self.source[self.token_start:self.token_start + self.token_length]

    def dispatch_token(self):
        """현재 숫자 토큰을 역할에 맞게 해석"""
        text = self.token()
        if self.role == TokenRole.CODE:
            self.code = parse_uint(text)
        elif self.role == TokenRole.X:
            self.params.x = parse_float(text)
        elif self.role == TokenRole.Y:
            self.params.y = parse_float(text)
        elif self.role == TokenRole.Z:
            self.params.z = parse_float(text)
        elif self.role == TokenRole.E:
            self.params.e = parse_float(text)
        self.role = TokenRole.UNKNOWN

    def commit_value(self):
        """진행 중인 메타데이터 값을 저장"""
        if self.value_key is not None and self.value_start is not None:
            self.metadata.capture(self.value_key, Span(self.value_start, self.value_end - self.value_start))
        self.value_start = None


def _on_line_start(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if ch == ";":
        ctx.reset_token()
        return ScanState.COMMENT
    if ch == "G":
        ctx.role = TokenRole.CODE
        ctx.params = MoveParams()
        ctx.reset_token(pos + 1)
        return ScanState.GCODE_WORD
    if ch not in WHITESPACE:
        return ScanState.SEEK_LINE_START
    return ScanState.LINE_START


def _on_seek_line_start(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if ch == "\n":
        return ScanState.LINE_START
    return ScanState.SEEK_LINE_START


def _on_gcode_word(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if _is_digit(ch) or (ctx.role != TokenRole.CODE and (ch == "." or (ctx.token_length == 0 and ch == "-"))):
        ctx.token_length += 1
        return ScanState.GCODE_WORD

    role = _PARAM_ROLES.get(ch)
    if role is not None:
        ctx.role = role
        ctx.reset_token(pos + 1)
        return ScanState.GCODE_WORD

    # 토큰 끝
    ctx.dispatch_token()
    if ch == "\n" or ch == ";":
        ctx.tracker.apply(ctx.code, ctx.params)
        if ch == "\n":
            return ScanState.LINE_START
        ctx.reset_token()
        return ScanState.COMMENT
    return ScanState.GCODE_WORD


def _on_comment(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if ch == "\n":
        if ctx.token() == LAYER_CHANGE_MARKER:
            # 첫 레이어 시작 -> 프라이밍/퍼지 범위 버림
            ctx.tracker.on_layer_change()
        return ScanState.LINE_START

    if ctx.token_start is None:
        if ch not in WHITESPACE:
            ctx.token_start = pos
            ctx.token_length = 1
        return ScanState.COMMENT

    if ch == " " and ctx.token_length > 0:
        word = ctx.token()
        if word == PROCESSED_MARKER:
            ctx.already_processed = True
        elif word == THUMBNAIL_BEGIN:
            ctx.thumbnail.begin(ctx.line_start)
            ctx.reset_token()
            if ctx.thumbnail.captured:
                # 두 번째 썸네일은 무시
                return ScanState.SEEK_LINE_START
            return ScanState.THUMBNAIL_BODY
        return ScanState.COMMENT

    if ch == "=":
        key = match_key(ctx.token())
        if key is None or ctx.metadata.is_captured(key):
            return ScanState.SEEK_LINE_START
        ctx.value_key = key
        ctx.value_start = None
        ctx.reset_token()
        return ScanState.PARAMETER_VALUE

    if ch not in WHITESPACE:
        # 끝 공백 제외
        ctx.token_length = pos - ctx.token_start + 1
    return ScanState.COMMENT


def _on_parameter_value(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if ch == "\n":
        ctx.commit_value()
        ctx.value_key = None
        return ScanState.LINE_START

    if ctx.value_start is None:
        if ch not in WHITESPACE:
            ctx.value_start = pos
            ctx.value_end = pos + 1
    elif ch == "," and ctx.value_key == MetadataKey.NOZZLE_TEMP_0:
        # 첫 번째 익스트루더 값 끝 -> 두 번째 익스트루더
        ctx.commit_value()
        ctx.value_key = MetadataKey.NOZZLE_TEMP_1
    elif ch not in WHITESPACE:
        ctx.value_end = pos + 1
    return ScanState.PARAMETER_VALUE


def _on_thumbnail_body(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    locator = ctx.thumbnail
    started = locator.captured
    if ch == "\n":
        locator.on_body_newline(pos)
    if not started:
        # begin 마커 라인의 나머지
        return ScanState.THUMBNAIL_BODY

    if ch == ";":
        ctx.reset_token(pos + 1)
    elif ctx.token_start is not None:
        if ctx.source[ctx.token_start] in WHITESPACE:
            # 앞 공백 무시
            ctx.token_start = pos
            ctx.token_length = 1
        else:
            ctx.token_length += 1
            if ctx.token_length == len(THUMBNAIL_END) and ctx.token() == THUMBNAIL_END:
                locator.end(ctx.line_start, pos)
                if ctx.remove_original_thumbnail:
                    return ScanState.THUMBNAIL_TAIL
                return ScanState.SEEK_LINE_START
    return ScanState.THUMBNAIL_BODY


def _on_thumbnail_tail(ch: str, pos: int, ctx: ScanContext) -> ScanState:
    if ch == "\n":
        ctx.thumbnail.finish_tail(pos)
        return ScanState.LINE_START
    return ScanState.THUMBNAIL_TAIL


_HANDLERS: Dict[ScanState, Callable[[str, int, ScanContext], ScanState]] = {
    ScanState.LINE_START: _on_line_start,
    ScanState.SEEK_LINE_START: _on_seek_line_start,
    ScanState.GCODE_WORD: _on_gcode_word,
    ScanState.COMMENT: _on_comment,
    ScanState.PARAMETER_VALUE: _on_parameter_value,
    ScanState.THUMBNAIL_BODY: _on_thumbnail_body,
    ScanState.THUMBNAIL_TAIL: _on_thumbnail_tail,
}


def transition(state: ScanState, ch: str, pos: int, ctx: ScanContext) -> ScanState:
    """
    한 문자에 대한 상태 전이

    Args:
        state: 현재 상태
        ch: 현재 문자 (latin-1 로 디코딩된 바이트 1개)
        pos: 버퍼 내 오프셋
        ctx: 스캔 컨텍스트 (추적기/추출기 포함)

    Returns:
        다음 상태
    """
    next_state = _HANDLERS[state](ch, pos, ctx)

    # 라인 번호 / 라인 시작 위치 갱신 (\r\n 대응)
    if ch == "\n":
        ctx.line_nr += 1
        ctx.line_start = pos + 1
    elif ch == "\r":
        ctx.line_start = pos + 1
    return next_state


@dataclass
class ScanResult:
    """스캔 결과 (버퍼가 살아있는 동안만 유효)"""
    buffer: bytes
    source: str
    tracker: PositionTracker
    metadata: MetadataExtractor
    thumbnail: ThumbnailRecord
    line_count: int
    already_processed: bool = False

    def value(self, key: MetadataKey) -> Optional[str]:
        return self.metadata.text(key, self.source)


def scan(buffer: bytes, remove_original_thumbnail: bool = False) -> ScanResult:
    """
    버퍼 전체에 대해 어휘 상태 기계 실행

    latin-1 로 디코딩하므로 문자 1개 = 바이트 1개이고,
    모든 오프셋이 원본 bytes 에 그대로 유효하다.
    """
    source = buffer.decode("latin-1")
    ctx = ScanContext(source=source, remove_original_thumbnail=remove_original_thumbnail)
    state = ScanState.LINE_START

    for pos, ch in enumerate(source):
        state = transition(state, ch, pos, ctx)
        if ctx.already_processed:
            logger.debug(f"[Scanner] Already post-processed marker found at line {ctx.line_nr}")
            break

    # 개행 없이 끝난 마지막 값
    if state == ScanState.PARAMETER_VALUE:
        ctx.commit_value()
    # 개행 없이 끝난 thumbnail end 라인 -> 버퍼 끝까지 제거
    elif state == ScanState.THUMBNAIL_TAIL:
        ctx.thumbnail.finish_at_eof(len(source))

    logger.debug(
        f"[Scanner] Scanned {len(buffer)} bytes, {ctx.line_nr} lines, "
        f"fields={sorted(k.value for k in ctx.metadata.fields)}, "
        f"thumbnail={ctx.thumbnail.record.has_payload()}"
    )

    return ScanResult(
        buffer=buffer,
        source=source,
        tracker=ctx.tracker,
        metadata=ctx.metadata,
        thumbnail=ctx.thumbnail.record,
        line_count=ctx.line_nr,
        already_processed=ctx.already_processed,
    )
