"""
토큰/스팬 모델과 숫자 렉서
입력 버퍼를 복사하지 않고 (offset, length)로 참조한다
"""
from dataclasses import dataclass


# 시간 단위 (초)
DURATION_UNITS = {
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}


@dataclass(frozen=True)
class Span:
    """입력 버퍼의 연속 구간 참조. length 0이면 '없음'"""
    offset: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length

    def is_set(self) -> bool:
        return self.length > 0

    def slice(self, buffer):
        """참조 구간 반환 (bytes 또는 str, 버퍼가 살아있는 동안만 유효)"""
        return buffer[self.offset:self.end]


EMPTY_SPAN = Span()


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def parse_uint(data: str) -> int:
    """앞쪽 숫자를 부호 없는 정수로 변환 (숫자가 아닌 문자에서 멈춤)"""
    value = 0
    for ch in data:
        if not _is_digit(ch):
            break
        value = value * 10 + (ord(ch) - 48)
    return value


def parse_float(data: str) -> float:
    """
    단순 실수 파싱 (부호, 정수부, 소수부)

    float()와 달리 예외를 던지지 않고, 처음 나오는 기타 문자에서 멈춘다.
    예: "210,215" -> 210.0, "-.5" -> -0.5, "" -> 0.0
    """
    if not data:
        return 0.0

    sign = 1.0
    i = 0
    if data[0] == "-":
        sign = -1.0
        i = 1

    whole = 0
    frac = 0
    frac_div = 1
    in_frac = False
    for ch in data[i:]:
        if _is_digit(ch):
            if in_frac:
                frac = frac * 10 + (ord(ch) - 48)
                frac_div *= 10
            else:
                whole = whole * 10 + (ord(ch) - 48)
        elif ch == ".":
            in_frac = True
        else:
            break

    return sign * (whole + frac / frac_div)


def parse_duration(data: str) -> int:
    """
    "1d2h3m4s" 형식의 시간을 초 단위로 변환

    각 구성요소는 생략 가능하며 알 수 없는 문자는 무시한다.
    단위 없이 끝나는 숫자는 버려진다.

    Examples:
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("45s")
        45
    """
    total = 0
    value = 0
    for ch in data:
        if _is_digit(ch):
            value = value * 10 + (ord(ch) - 48)
        elif ch in DURATION_UNITS:
            total += value * DURATION_UNITS[ch]
            value = 0
    return total
