"""
위치 및 바운딩 박스 추적기
G0/G1 이동 명령으로 현재 툴 위치를 갱신하고, 압출 이동의 최소/최대 범위를 계산
"""
from typing import Dict, Optional
from dataclasses import dataclass, field
from enum import Enum


AXES = ("x", "y", "z")


class PositioningMode(str, Enum):
    """좌표 해석 모드 (G90/G91)"""
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


@dataclass
class Position:
    """현재 툴 위치. None = 아직 한 번도 지정되지 않은 축 (0과 구분)"""
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None

    def get(self, axis: str) -> Optional[float]:
        return getattr(self, axis)

    def set(self, axis: str, value: Optional[float]):
        setattr(self, axis, value)


@dataclass
class BoundingBox:
    """3D 바운딩 박스 (압출 이동만 반영)"""
    min_x: float = float('inf')
    max_x: float = float('-inf')
    min_y: float = float('inf')
    max_y: float = float('-inf')
    min_z: float = float('inf')
    max_z: float = float('-inf')

    def fold(self, axis: str, value: Optional[float]):
        """한 축의 값을 범위에 반영. 미지정(None) 값은 무시"""
        if value is None:
            return
        if getattr(self, f"min_{axis}") > value:
            setattr(self, f"min_{axis}", value)
        if getattr(self, f"max_{axis}") < value:
            setattr(self, f"max_{axis}", value)

    def reset(self):
        for axis in AXES:
            setattr(self, f"min_{axis}", float('inf'))
            setattr(self, f"max_{axis}", float('-inf'))

    def has_extent(self, axis: str) -> bool:
        return getattr(self, f"min_{axis}") <= getattr(self, f"max_{axis}")

    def to_dict(self) -> Dict[str, float]:
        """헤더 출력용. 범위가 없는 축은 0"""
        result = {}
        for bound in ("max", "min"):
            for axis in AXES:
                key = f"{bound}_{axis}"
                result[key] = getattr(self, key) if self.has_extent(axis) else 0.0
        return result


@dataclass
class MoveParams:
    """한 G-code 라인에서 디코딩된 X/Y/Z/E 파라미터 (없으면 None)"""
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    e: Optional[float] = None

    def get(self, axis: str) -> Optional[float]:
        return getattr(self, axis)

    def is_extruding(self) -> bool:
        return self.e is not None and self.e > 0.0


@dataclass
class PositionTracker:
    """
    툴 위치와 압출 이동 범위 추적

    G0/G1 만 위치를 바꾸고 G90/G91 은 좌표 모드를 전환한다.
    바운딩 박스는 첫 레이어 변경에서 한 번만 초기화되어
    첫 레이어 이전의 프라이밍/퍼지 이동을 버린다.
    """
    position: Position = field(default_factory=Position)
    bbox: BoundingBox = field(default_factory=BoundingBox)
    mode: PositioningMode = PositioningMode.ABSOLUTE
    prev_extruding: bool = False
    has_layer_change: bool = False

    def apply(self, code: Optional[int], params: MoveParams):
        """디코딩 완료된 G 명령 적용"""
        if code in (0, 1):
            self.move(params)
        elif code == 90:
            self.mode = PositioningMode.ABSOLUTE
        elif code == 91:
            self.mode = PositioningMode.RELATIVE

    def move(self, params: MoveParams):
        extruding = params.is_extruding()

        # 이동(travel) 후 새 압출 구간 시작 -> 시작점 포함
        if extruding and not self.prev_extruding:
            for axis in AXES:
                self.bbox.fold(axis, self.position.get(axis))

        for axis in AXES:
            value = params.get(axis)
            if value is None:
                continue
            if self.mode == PositioningMode.ABSOLUTE:
                self.position.set(axis, value)
            else:
                current = self.position.get(axis)
                # 미지정 축에 대한 상대 이동은 미지정 유지
                self.position.set(axis, None if current is None else current + value)

        if extruding:
            for axis in AXES:
                if params.get(axis) is not None:
                    self.bbox.fold(axis, self.position.get(axis))

        self.prev_extruding = extruding

    def on_layer_change(self):
        """첫 LAYER_CHANGE 에서만 범위 초기화"""
        if self.has_layer_change:
            return
        self.has_layer_change = True
        self.bbox.reset()

    def correct_min_z(self, first_layer_height: Optional[float]):
        """첫 레이어 높이만큼 min_z 보정 (z 범위가 유효할 때만)"""
        if first_layer_height is None:
            return
        if self.bbox.min_z < self.bbox.max_z:
            self.bbox.min_z -= first_layer_height
