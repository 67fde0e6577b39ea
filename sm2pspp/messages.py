"""
진단 메시지 정의
치명적 오류(fatal)와 경고(warning) 종류, 출력 문자열 테이블, 기본 콜백
"""
from typing import Callable, Dict
from enum import Enum
import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    FATAL = "fatal"      # 콜백 반환값과 무관하게 중단
    WARNING = "warning"  # 콜백이 계속/중단 결정


class MessageType(str, Enum):
    """진단 종류"""
    ERR_NO_MEM = "err_no_mem"
    ERR_FILE_NOT_FOUND = "err_file_not_found"
    ERR_FILE_OPEN = "err_file_open"
    ERR_FILE_READ = "err_file_read"
    ERR_FILE_CREATE = "err_file_create"
    ERR_FILE_WRITE = "err_file_write"
    WARN_NO_FILAMENT_USED = "warn_no_filament_used"
    WARN_NO_LAYER_HEIGHT = "warn_no_layer_height"
    WARN_NO_EST_TIME = "warn_no_est_time"
    WARN_NO_NOZZLE_TEMP = "warn_no_nozzle_temp"
    WARN_NO_PLATE_TEMP = "warn_no_plate_temp"
    WARN_NO_PRINT_SPEED = "warn_no_print_speed"
    WARN_NO_THUMBNAIL = "warn_no_thumbnail"

    @property
    def severity(self) -> Severity:
        if self.value.startswith("err_"):
            return Severity.FATAL
        return Severity.WARNING


MESSAGES: Dict[MessageType, str] = {
    MessageType.ERR_NO_MEM: "Error: Failed to allocate memory.",
    MessageType.ERR_FILE_NOT_FOUND: "Error: Input file not found.",
    MessageType.ERR_FILE_OPEN: "Error: Failed to open file for reading.",
    MessageType.ERR_FILE_READ: "Error: Failed to read data from file.",
    MessageType.ERR_FILE_CREATE: "Error: Failed to create file for writing.",
    MessageType.ERR_FILE_WRITE: "Error: Failed to write data to file.",
    MessageType.WARN_NO_FILAMENT_USED: "Warning: Filament used value not found.",
    MessageType.WARN_NO_LAYER_HEIGHT: "Warning: Layer height value not found.",
    MessageType.WARN_NO_EST_TIME: "Warning: Estimated time value not found.",
    MessageType.WARN_NO_NOZZLE_TEMP: "Warning: Nozzle temperature value not found.",
    MessageType.WARN_NO_PLATE_TEMP: "Warning: Building plate temperature value not found.",
    MessageType.WARN_NO_PRINT_SPEED: "Warning: Print speed value not found.",
    MessageType.WARN_NO_THUMBNAIL: "Warning: Thumbnail data not found.",
}


# (kind, file path, line number; 0 = 라인 무관) -> True 면 계속
DiagnosticCallback = Callable[[MessageType, str, int], bool]


class Diagnostic(BaseModel):
    """단일 진단 항목"""
    kind: MessageType
    severity: Severity
    path: str
    line: int = 0
    message: str

    @classmethod
    def create(cls, kind: MessageType, path: str, line: int = 0) -> "Diagnostic":
        return cls(kind=kind, severity=kind.severity, path=path, line=line, message=MESSAGES[kind])

    def format(self) -> str:
        if self.line > 0:
            return f"{self.path}:{self.line}: {self.message}"
        return f"{self.path}: {self.message}"


def log_diagnostic(kind: MessageType, path: str, line: int) -> bool:
    """기본 콜백: 로그로 출력하고 항상 계속"""
    diagnostic = Diagnostic.create(kind, path, line)
    if diagnostic.severity == Severity.FATAL:
        logger.error(diagnostic.format())
    else:
        logger.warning(diagnostic.format())
    return True


class DiagnosticCollector:
    """진단을 모아두는 콜백 (요약 출력/테스트용)"""

    def __init__(self, proceed: bool = True):
        self.proceed = proceed
        self.diagnostics = []

    def __call__(self, kind: MessageType, path: str, line: int) -> bool:
        self.diagnostics.append(Diagnostic.create(kind, path, line))
        return self.proceed

    @property
    def kinds(self):
        return [d.kind for d in self.diagnostics]
