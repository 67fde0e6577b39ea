"""
sm2pspp Configuration
환경 변수(.env 포함)와 CLI 옵션으로 처리 방식 설정
"""
import codecs
import os
from typing import Optional

import dotenv
from pydantic import BaseModel, field_validator

from . import __version__

PROGRAM_URL = "https://github.com/daniel-starke/sm2pspp"

_TRUE_VALUES = {"1", "true", "yes", "on"}

# 헤더에서 ASCII 가 아닌 유일한 텍스트
HEADER_SAMPLE_TEXT = ";nozzle_temperature(°C)"


class ProcessorConfig(BaseModel):
    """파일 처리 설정"""
    remove_original_thumbnail: bool = False  # 원본 썸네일 블록 제거
    program_version: str = __version__       # 헤더 마커에 기록되는 버전
    program_url: str = PROGRAM_URL
    header_encoding: str = "utf-8"           # 헤더("°C" 포함) 인코딩

    @field_validator("header_encoding")
    @classmethod
    def validate_header_encoding(cls, v: str) -> str:
        """헤더의 "°C" 를 표현할 수 있는 코덱만 허용"""
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown header encoding: {v}")
        try:
            HEADER_SAMPLE_TEXT.encode(v)
        except (LookupError, UnicodeEncodeError):
            raise ValueError(f"Header encoding {v} cannot encode {HEADER_SAMPLE_TEXT!r}")
        return v


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_VALUES


def load_config(remove_original_thumbnail: Optional[bool] = None) -> ProcessorConfig:
    """
    설정 로드 (.env -> 환경 변수 -> 인자 순으로 덮어씀)

    Environment:
        SM2PSPP_REMOVE_THUMBNAIL: 원본 썸네일 제거 여부 (1/true/yes/on)
        SM2PSPP_HEADER_ENCODING: 헤더 인코딩
    """
    dotenv.load_dotenv()

    values = {}
    env_remove = _env_flag("SM2PSPP_REMOVE_THUMBNAIL")
    if env_remove is not None:
        values["remove_original_thumbnail"] = env_remove
    encoding = os.getenv("SM2PSPP_HEADER_ENCODING")
    if encoding:
        values["header_encoding"] = encoding
    if remove_original_thumbnail is not None:
        values["remove_original_thumbnail"] = remove_original_thumbnail

    return ProcessorConfig(**values)


def get_default_config() -> ProcessorConfig:
    return ProcessorConfig()
