"""
치명적 처리 오류
process_file() 내부에서 발생시키고, 진단 콜백으로 한 번 보고한 뒤 실패 처리
"""
from .messages import MessageType


class ProcessingError(Exception):
    """파일 처리 중단 오류"""
    kind: MessageType = MessageType.ERR_FILE_READ

    def __init__(self, path: str, detail: str = ""):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}" if detail else path)


class FileNotFound(ProcessingError):
    kind = MessageType.ERR_FILE_NOT_FOUND


class FileOpenError(ProcessingError):
    kind = MessageType.ERR_FILE_OPEN


class FileReadError(ProcessingError):
    kind = MessageType.ERR_FILE_READ


class OutOfMemory(ProcessingError):
    kind = MessageType.ERR_NO_MEM


class FileCreateError(ProcessingError):
    kind = MessageType.ERR_FILE_CREATE


class FileWriteError(ProcessingError):
    kind = MessageType.ERR_FILE_WRITE
