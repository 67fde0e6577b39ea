"""
G-code 후처리 실행기

PrusaSlicer 가 생성한 G-code 파일을 Snapmaker 2.0 터미널이 읽을 수 있도록
헤더를 만들어 앞에 붙이고, 파일을 제자리에서 다시 쓴다.

처리 순서:
1. 파일 전체 읽기
2. 단일 패스 스캔 (위치/메타데이터/썸네일)
3. 누락 값 경고 (콜백이 중단 여부 결정)
4. 파일 잘라내기 후 헤더 + 원본 본문 기록
"""
from typing import List, Optional, Tuple
from enum import Enum
import logging

from .config import ProcessorConfig, get_default_config
from .errors import OutOfMemory, ProcessingError
from .file_port import LocalFilePort
from .header import HeaderFields, build_header_fields, render_header
from .messages import DiagnosticCallback, MessageType, log_diagnostic
from .metadata import MetadataKey
from .scanner import ScanResult, scan
from .tokens import parse_float

logger = logging.getLogger(__name__)


class ProcessStatus(str, Enum):
    """처리 결과"""
    SUCCESS = "success"
    FAILURE = "failure"    # 치명적 오류
    ABORTED = "aborted"    # 경고 후 콜백이 중단 요청


# 누락 시 경고를 내는 필드 (None = 썸네일)
WARNING_CHECKS: List[Tuple[Optional[MetadataKey], MessageType]] = [
    (MetadataKey.FILAMENT_USED, MessageType.WARN_NO_FILAMENT_USED),
    (MetadataKey.LAYER_HEIGHT, MessageType.WARN_NO_LAYER_HEIGHT),
    (MetadataKey.ESTIMATED_TIME, MessageType.WARN_NO_EST_TIME),
    (MetadataKey.NOZZLE_TEMP_0, MessageType.WARN_NO_NOZZLE_TEMP),
    (MetadataKey.PLATE_TEMP, MessageType.WARN_NO_PLATE_TEMP),
    (MetadataKey.PRINT_SPEED, MessageType.WARN_NO_PRINT_SPEED),
    (None, MessageType.WARN_NO_THUMBNAIL),
]


def analyze_buffer(buffer: bytes, config: Optional[ProcessorConfig] = None) -> ScanResult:
    """버퍼 스캔 + 첫 레이어 높이 min_z 보정"""
    config = config or get_default_config()
    try:
        result = scan(buffer, remove_original_thumbnail=config.remove_original_thumbnail)
    except MemoryError as e:
        raise OutOfMemory("<buffer>") from e

    first_layer = result.value(MetadataKey.FIRST_LAYER_HEIGHT)
    if first_layer is not None:
        result.tracker.correct_min_z(parse_float(first_layer))
    return result


def missing_warnings(result: ScanResult) -> List[MessageType]:
    """찾지 못한 값에 대한 경고 목록 (고정 순서)"""
    warnings = []
    for key, kind in WARNING_CHECKS:
        if key is None:
            found = result.thumbnail.has_payload()
        else:
            found = result.metadata.is_captured(key)
        if not found:
            warnings.append(kind)
    return warnings


def content_chunks(result: ScanResult) -> Tuple[List[bytes], int]:
    """
    헤더 뒤에 쓸 원본 본문 조각과 그 라인 수

    원본 썸네일 제거 구간이 있으면 그 부분만 잘라낸다.
    """
    buffer = result.buffer
    block = result.thumbnail.original_block
    if block is not None and block.is_set():
        chunks = [buffer[:block.offset], buffer[block.end:]]
        return chunks, result.line_count - result.thumbnail.removed_lines
    return [buffer], result.line_count


def process_file(
    path: str,
    callback: DiagnosticCallback = log_diagnostic,
    config: Optional[ProcessorConfig] = None,
    port: Optional[LocalFilePort] = None,
) -> ProcessStatus:
    """
    G-code 파일을 제자리에서 후처리

    Args:
        path: G-code 파일 경로
        callback: 진단 콜백 (kind, path, line) -> 계속 여부
        config: 처리 설정
        port: 파일 입출력 (기본: 로컬 파일)

    Returns:
        ProcessStatus
    """
    config = config or get_default_config()
    port = port or LocalFilePort(path)

    try:
        buffer = port.read()
        if not buffer:
            logger.info(f"[Processor] Empty file, nothing to do: {path}")
            return ProcessStatus.SUCCESS

        result = analyze_buffer(buffer, config)
        if result.already_processed:
            logger.info(f"[Processor] Already post-processed: {path}")
            return ProcessStatus.SUCCESS

        for kind in missing_warnings(result):
            if not callback(kind, path, 0):
                logger.info(f"[Processor] Aborted by callback after {kind.value}: {path}")
                return ProcessStatus.ABORTED

        fields = build_header_fields(result)
        chunks, content_lines = content_chunks(result)
        header = render_header(
            fields,
            content_lines,
            version=config.program_version,
            url=config.program_url,
            encoding=config.header_encoding,
        )
        port.write([header] + chunks)

    except ProcessingError as e:
        # 치명적 오류: 콜백 반환값 무시
        callback(e.kind, path, 0)
        logger.debug(f"[Processor] Failed: {e}")
        return ProcessStatus.FAILURE

    logger.info(
        f"[Processor] Post-processed {path} "
        f"(lines={content_lines}, thumbnail={fields.thumbnail is not None})"
    )
    return ProcessStatus.SUCCESS


def analyze_file(path: str, config: Optional[ProcessorConfig] = None) -> HeaderFields:
    """
    파일을 수정하지 않고 헤더 값만 계산 (--summary)

    Raises:
        ProcessingError: 파일을 읽을 수 없는 경우
    """
    buffer = LocalFilePort(path).read()
    return build_header_fields(analyze_buffer(buffer, config))
