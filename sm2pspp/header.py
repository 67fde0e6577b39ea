"""
Snapmaker 2.0 헤더 생성기
스캔 결과(스팬)를 값으로 디코딩하고 고정 순서의 헤더 라인을 만든다
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .metadata import MetadataKey
from .scanner import ScanResult
from .tokens import parse_duration, parse_float

# 두 번째 노즐 온도 라인 출력 기준 (°C)
NOZZLE_1_MIN_TEMP = 0.1

THUMBNAIL_PREFIX = "data:image/png;base64,"


class HeaderFields(BaseModel):
    """헤더에 기록되는 값 (찾지 못한 값은 0)"""
    filament_used_mm: float = 0.0
    first_layer_height: Optional[float] = None
    layer_height: float = 0.0
    estimated_time_s: int = 0
    nozzle_temp_0: float = 0.0
    nozzle_temp_1: float = 0.0
    plate_temp: float = 0.0
    print_speed: float = 0.0               # mm/s
    thumbnail: Optional[str] = None        # 한 줄로 재구성된 Base64
    bounding_box: Dict[str, float] = Field(default_factory=dict)
    missing: List[MetadataKey] = Field(default_factory=list)

    @property
    def has_second_nozzle(self) -> bool:
        return self.nozzle_temp_1 > NOZZLE_1_MIN_TEMP


def _float_value(scan: ScanResult, key: MetadataKey) -> float:
    text = scan.value(key)
    return parse_float(text) if text is not None else 0.0


def build_header_fields(scan: ScanResult) -> HeaderFields:
    """스캔 결과의 스팬을 헤더 값으로 디코딩"""
    first_layer = scan.value(MetadataKey.FIRST_LAYER_HEIGHT)
    est_time = scan.value(MetadataKey.ESTIMATED_TIME)
    thumbnail = scan.thumbnail.reflowed(scan.buffer) if scan.thumbnail.has_payload() else None

    return HeaderFields(
        filament_used_mm=_float_value(scan, MetadataKey.FILAMENT_USED),
        first_layer_height=parse_float(first_layer) if first_layer is not None else None,
        layer_height=_float_value(scan, MetadataKey.LAYER_HEIGHT),
        estimated_time_s=parse_duration(est_time) if est_time is not None else 0,
        nozzle_temp_0=_float_value(scan, MetadataKey.NOZZLE_TEMP_0),
        nozzle_temp_1=_float_value(scan, MetadataKey.NOZZLE_TEMP_1),
        plate_temp=_float_value(scan, MetadataKey.PLATE_TEMP),
        print_speed=_float_value(scan, MetadataKey.PRINT_SPEED),
        thumbnail=thumbnail.decode("ascii") if thumbnail else None,
        bounding_box=scan.tracker.bbox.to_dict(),
        missing=[key for key in MetadataKey if not scan.metadata.is_captured(key)],
    )


def header_lines(
    fields: HeaderFields,
    content_lines: int,
    version: str,
    url: str,
) -> List[str]:
    """
    헤더 라인 목록 생성

    file_total_lines 는 실제 출력되는 헤더 라인 수 + 본문 라인 수로 계산한다.

    Args:
        fields: 디코딩된 헤더 값
        content_lines: 헤더 뒤에 이어지는 본문의 라인 수
        version: 도구 버전
        url: 도구 URL
    """
    bbox = fields.bounding_box

    lines = [
        f";post-processed by sm2pspp {version} ({url})",
        ";Header Start",
        "",
        ";FLAVOR:Marlin",
        ";TIME:6666",
        "",
        "",
        f";Filament used: {fields.filament_used_mm / 1000.0:.0f}m",
        f";Layer height: {fields.layer_height:.2f}",
        ";header_type: 3dp",
    ]
    if fields.thumbnail:
        lines.append(f";thumbnail: {THUMBNAIL_PREFIX}{fields.thumbnail}")
    total_index = len(lines)
    lines.append("")  # file_total_lines (라인 수 확정 후 채움)
    lines.append(f";estimated_time(s): {fields.estimated_time_s:.0f}")
    lines.append(f";nozzle_temperature(°C): {fields.nozzle_temp_0:.0f}")
    if fields.has_second_nozzle:
        lines.append(f";nozzle_1_temperature(°C): {fields.nozzle_temp_1:.0f}")
    lines.extend([
        f";build_plate_temperature(°C): {fields.plate_temp:.0f}",
        f";work_speed(mm/minute): {fields.print_speed * 60.0:.0f}",
        f";max_x(mm): {bbox.get('max_x', 0.0):.2f}",
        f";max_y(mm): {bbox.get('max_y', 0.0):.2f}",
        f";max_z(mm): {bbox.get('max_z', 0.0):.2f}",
        f";min_x(mm): {bbox.get('min_x', 0.0):.2f}",
        f";min_y(mm): {bbox.get('min_y', 0.0):.2f}",
        f";min_z(mm): {bbox.get('min_z', 0.0):.2f}",
        "",
        ";Header End",
        "",
    ])
    lines[total_index] = f";file_total_lines: {len(lines) + content_lines}"
    return lines


def render_header(
    fields: HeaderFields,
    content_lines: int,
    version: str,
    url: str,
    encoding: str = "utf-8",
) -> bytes:
    """헤더 바이트열 (모든 라인 \\n 종료)"""
    lines = header_lines(fields, content_lines, version, url)
    return ("\n".join(lines) + "\n").encode(encoding)
