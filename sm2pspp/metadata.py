"""
주석 메타데이터 추출기
PrusaSlicer가 출력하는 "; key = value" 주석에서 필요한 값만 스팬으로 보관
"""
from typing import Dict, List, Optional, Tuple
from enum import Enum

from .tokens import Span


class MetadataKey(str, Enum):
    """인식하는 메타데이터 필드"""
    FILAMENT_USED = "filament_used"            # mm
    FIRST_LAYER_HEIGHT = "first_layer_height"  # mm
    LAYER_HEIGHT = "layer_height"              # mm
    ESTIMATED_TIME = "estimated_time"          # "1d 2h 3m 4s"
    NOZZLE_TEMP_0 = "nozzle_temp_0"            # °C
    NOZZLE_TEMP_1 = "nozzle_temp_1"            # °C (듀얼 익스트루더)
    PLATE_TEMP = "plate_temp"                  # °C
    PRINT_SPEED = "print_speed"                # mm/s


# (주석 키, 필드, prefix 매칭 여부)
# estimated printing time 은 "(normal mode)" 등 접미사가 붙으므로 prefix 매칭
RECOGNIZED_KEYS: List[Tuple[str, MetadataKey, bool]] = [
    ("filament used [mm]", MetadataKey.FILAMENT_USED, False),
    ("first_layer_height", MetadataKey.FIRST_LAYER_HEIGHT, False),
    ("layer_height", MetadataKey.LAYER_HEIGHT, False),
    ("estimated printing time", MetadataKey.ESTIMATED_TIME, True),
    ("first_layer_temperature", MetadataKey.NOZZLE_TEMP_0, False),
    ("first_layer_bed_temperature", MetadataKey.PLATE_TEMP, False),
    ("max_print_speed", MetadataKey.PRINT_SPEED, False),
]


def match_key(token: str) -> Optional[MetadataKey]:
    """주석 키 문자열을 필드로 매핑. 인식하지 못하면 None"""
    for text, key, is_prefix in RECOGNIZED_KEYS:
        if is_prefix:
            if token.startswith(text):
                return key
        elif token == text:
            return key
    return None


class MetadataExtractor:
    """
    인식된 키의 값 스팬 저장소

    같은 키는 처음 나온 값만 유지하고 이후 중복은 무시한다.
    """

    def __init__(self):
        self.fields: Dict[MetadataKey, Span] = {}

    def is_captured(self, key: MetadataKey) -> bool:
        return key in self.fields

    def capture(self, key: MetadataKey, span: Span) -> bool:
        """값 저장. 빈 값이거나 이미 저장된 키면 False"""
        if not span.is_set() or key in self.fields:
            return False
        self.fields[key] = span
        return True

    def get(self, key: MetadataKey) -> Optional[Span]:
        return self.fields.get(key)

    def text(self, key: MetadataKey, source: str) -> Optional[str]:
        """필드 값 문자열 (없으면 None)"""
        span = self.fields.get(key)
        if span is None:
            return None
        return span.slice(source)
