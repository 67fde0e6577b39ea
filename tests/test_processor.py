"""
파일 후처리 통합 테스트
"""
import pytest
from sm2pspp.config import ProcessorConfig
from sm2pspp.errors import FileCreateError, FileOpenError, FileWriteError
from sm2pspp.file_port import LocalFilePort
from sm2pspp.header import HeaderFields, header_lines
from sm2pspp.messages import DiagnosticCollector, MessageType
from sm2pspp.processor import ProcessStatus, analyze_file, process_file


MINIMAL_GCODE = (
    "G90\n"
    "G1 X10 Y10 Z0.2 E1\n"
    "; filament used [mm] = 1000\n"
    "; layer_height = 0.2\n"
)

FULL_GCODE = (
    "; generated by PrusaSlicer 2.5.0\n"
    "\n"
    "; thumbnail begin 16x16 100\n"
    "; iVBORw0KGgo\n"
    "; AAAANSUhEUg==\n"
    "; thumbnail end\n"
    "\n"
    "M104 S210\n"
    "G90\n"
    "G1 Z5 F5000\n"
    "G1 X-3 Y-3 Z0.3 E9 ; purge\n"
    ";LAYER_CHANGE\n"
    ";Z:0.2\n"
    "G0 X20 Y20 Z0.2\n"
    "G1 X40 Y20 E1.5\n"
    "G1 X40 Y30 E0.75\n"
    ";LAYER_CHANGE\n"
    "G0 Z0.4\n"
    "G1 X20 Y20 E2\n"
    "; filament used [mm] = 2345.6\n"
    "; estimated printing time (normal mode) = 1h 2m 3s\n"
    "; first_layer_bed_temperature = 60\n"
    "; first_layer_height = 0.2\n"
    "; first_layer_temperature = 215,0\n"
    "; layer_height = 0.2\n"
    "; max_print_speed = 80\n"
)

HEADER_END = ";Header End\n\n"


@pytest.fixture
def gcode_file(tmp_path):
    """G-code 임시 파일 생성기"""
    def _make(content: str, name: str = "part.gcode"):
        path = tmp_path / name
        path.write_bytes(content.encode("utf-8"))
        return path
    return _make


def _split(output: bytes):
    header, _, body = output.partition(HEADER_END.encode("utf-8"))
    return header.decode("utf-8").split("\n"), body


class TestEndToEnd:
    """전체 처리 흐름"""

    def test_minimal_file(self, gcode_file):
        path = gcode_file(MINIMAL_GCODE)
        collector = DiagnosticCollector()

        assert process_file(str(path), collector) == ProcessStatus.SUCCESS

        header, body = _split(path.read_bytes())
        assert body == MINIMAL_GCODE.encode("utf-8")
        assert header[0].startswith(";post-processed by sm2pspp ")
        assert ";Filament used: 1m" in header
        assert ";Layer height: 0.20" in header
        assert ";max_x(mm): 10.00" in header
        assert ";max_y(mm): 10.00" in header
        assert ";max_z(mm): 0.20" in header
        assert ";min_x(mm): 10.00" in header
        assert ";min_y(mm): 10.00" in header
        assert ";min_z(mm): 0.20" in header
        # 헤더 24줄 + 본문 4줄 + 1
        assert ";file_total_lines: 29" in header

    def test_full_file(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        collector = DiagnosticCollector()

        assert process_file(str(path), collector) == ProcessStatus.SUCCESS
        assert collector.diagnostics == []

        output = path.read_bytes()
        header, body = _split(output)
        assert body == FULL_GCODE.encode("utf-8")
        assert ";thumbnail: data:image/png;base64,iVBORw0KGgoAAAANSUhEUg==" in header
        assert ";Filament used: 2m" in header
        assert ";estimated_time(s): 3723" in header
        assert ";nozzle_temperature(°C): 215" in header
        assert not any(line.startswith(";nozzle_1_temperature") for line in header)
        assert ";build_plate_temperature(°C): 60" in header
        assert ";work_speed(mm/minute): 4800" in header
        # 퍼지 이동(-3)은 첫 LAYER_CHANGE 에서 버려짐
        assert ";max_x(mm): 40.00" in header
        assert ";max_y(mm): 30.00" in header
        assert ";max_z(mm): 0.40" in header
        assert ";min_x(mm): 20.00" in header
        assert ";min_y(mm): 20.00" in header
        # 0.2 - 첫 레이어 높이 0.2
        assert ";min_z(mm): 0.00" in header
        # 헤더 25줄(썸네일 포함) + 본문 26줄 + 1
        assert ";file_total_lines: 52" in header

    def test_total_lines_matches_output(self, gcode_file):
        """file_total_lines == 실제 출력 개행 수 + 1"""
        path = gcode_file(FULL_GCODE)
        process_file(str(path), DiagnosticCollector())
        output = path.read_bytes()
        header, _ = _split(output)
        total = [line for line in header if line.startswith(";file_total_lines:")][0]
        assert int(total.split(":")[1]) == output.count(b"\n") + 1

    def test_header_order(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        process_file(str(path), DiagnosticCollector())
        header, _ = _split(path.read_bytes())
        keys = [line.split(":")[0] for line in header if line]
        assert keys == [
            ";post-processed by sm2pspp 1.2.0 (https",
            ";Header Start",
            ";FLAVOR",
            ";TIME",
            ";Filament used",
            ";Layer height",
            ";header_type",
            ";thumbnail",
            ";file_total_lines",
            ";estimated_time(s)",
            ";nozzle_temperature(°C)",
            ";build_plate_temperature(°C)",
            ";work_speed(mm/minute)",
            ";max_x(mm)",
            ";max_y(mm)",
            ";max_z(mm)",
            ";min_x(mm)",
            ";min_y(mm)",
            ";min_z(mm)",
        ]

    def test_dual_extruder_line(self, gcode_file):
        path = gcode_file(MINIMAL_GCODE + "; first_layer_temperature = 210,220\n")
        process_file(str(path), DiagnosticCollector())
        header, _ = _split(path.read_bytes())
        assert ";nozzle_temperature(°C): 210" in header
        assert ";nozzle_1_temperature(°C): 220" in header
        # 헤더 25줄 + 본문 5줄 + 1
        assert ";file_total_lines: 31" in header

    def test_duplicate_key_keeps_first(self, gcode_file):
        path = gcode_file(MINIMAL_GCODE + "; layer_height = 0.3\n")
        process_file(str(path), DiagnosticCollector())
        header, _ = _split(path.read_bytes())
        assert ";Layer height: 0.20" in header


class TestIdempotence:
    """이미 처리된 파일"""

    def test_second_run_is_noop(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        assert process_file(str(path), DiagnosticCollector()) == ProcessStatus.SUCCESS
        first = path.read_bytes()

        collector = DiagnosticCollector()
        assert process_file(str(path), collector) == ProcessStatus.SUCCESS
        assert path.read_bytes() == first
        assert collector.diagnostics == []

    def test_empty_file(self, gcode_file):
        path = gcode_file("")
        collector = DiagnosticCollector()
        assert process_file(str(path), collector) == ProcessStatus.SUCCESS
        assert path.read_bytes() == b""
        assert collector.diagnostics == []


class TestWarnings:
    """누락 값 경고"""

    def test_all_seven_warnings(self, gcode_file):
        path = gcode_file("G1 X1 Y2 Z3 E1\n")
        collector = DiagnosticCollector(proceed=True)

        assert process_file(str(path), collector) == ProcessStatus.SUCCESS
        assert collector.kinds == [
            MessageType.WARN_NO_FILAMENT_USED,
            MessageType.WARN_NO_LAYER_HEIGHT,
            MessageType.WARN_NO_EST_TIME,
            MessageType.WARN_NO_NOZZLE_TEMP,
            MessageType.WARN_NO_PLATE_TEMP,
            MessageType.WARN_NO_PRINT_SPEED,
            MessageType.WARN_NO_THUMBNAIL,
        ]
        assert all(d.line == 0 for d in collector.diagnostics)

        header, body = _split(path.read_bytes())
        assert body == b"G1 X1 Y2 Z3 E1\n"
        assert ";Filament used: 0m" in header
        assert ";Layer height: 0.00" in header
        assert ";estimated_time(s): 0" in header
        assert ";nozzle_temperature(°C): 0" in header
        assert ";build_plate_temperature(°C): 0" in header
        assert ";work_speed(mm/minute): 0" in header
        assert not any(line.startswith(";thumbnail") for line in header)
        assert ";max_z(mm): 3.00" in header

    def test_no_moves_renders_zero_extents(self, gcode_file):
        path = gcode_file("; layer_height = 0.2\n")
        process_file(str(path), DiagnosticCollector())
        header, _ = _split(path.read_bytes())
        assert ";max_x(mm): 0.00" in header
        assert ";min_z(mm): 0.00" in header

    def test_abort_leaves_file_untouched(self, gcode_file):
        path = gcode_file("G1 X1 E1\n")
        collector = DiagnosticCollector(proceed=False)

        assert process_file(str(path), collector) == ProcessStatus.ABORTED
        assert collector.kinds == [MessageType.WARN_NO_FILAMENT_USED]
        assert path.read_bytes() == b"G1 X1 E1\n"


class _FailingWritePort(LocalFilePort):
    def write(self, chunks):
        raise FileWriteError(self.path, "disk full")


class _RedirectedWritePort(LocalFilePort):
    """source 에서 읽고 path 로 쓰기"""

    def __init__(self, source: str, path: str):
        super().__init__(path)
        self.source = source

    def read(self):
        return LocalFilePort(self.source).read()


class _BrokenFile:
    """read() 에서 지정한 예외를 던지는 파일 객체"""

    def __init__(self, error):
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def read(self):
        raise self.error


class TestFatalErrors:
    """치명적 오류"""

    def test_file_not_found(self, tmp_path):
        collector = DiagnosticCollector(proceed=True)
        status = process_file(str(tmp_path / "missing.gcode"), collector)
        assert status == ProcessStatus.FAILURE
        assert collector.kinds == [MessageType.ERR_FILE_NOT_FOUND]

    def test_write_failure(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        collector = DiagnosticCollector(proceed=True)
        status = process_file(str(path), collector, port=_FailingWritePort(str(path)))
        assert status == ProcessStatus.FAILURE
        assert collector.kinds == [MessageType.ERR_FILE_WRITE]

    def test_directory_open_failure(self, tmp_path):
        collector = DiagnosticCollector(proceed=True)
        status = process_file(str(tmp_path), collector)
        assert status == ProcessStatus.FAILURE
        assert collector.kinds == [MessageType.ERR_FILE_OPEN]

    def test_create_failure(self, gcode_file, tmp_path):
        path = gcode_file(FULL_GCODE)
        target = tmp_path / "out"
        target.mkdir()
        collector = DiagnosticCollector(proceed=True)
        port = _RedirectedWritePort(str(path), str(target))

        assert process_file(str(path), collector, port=port) == ProcessStatus.FAILURE
        assert collector.kinds == [MessageType.ERR_FILE_CREATE]
        assert path.read_bytes() == FULL_GCODE.encode("utf-8")

    @pytest.mark.parametrize("error, kind", [
        (OSError("I/O error"), MessageType.ERR_FILE_READ),
        (MemoryError(), MessageType.ERR_NO_MEM),
    ])
    def test_read_failure(self, gcode_file, monkeypatch, error, kind):
        path = gcode_file(FULL_GCODE)
        monkeypatch.setattr("sm2pspp.file_port.open", lambda *args: _BrokenFile(error), raising=False)
        collector = DiagnosticCollector(proceed=True)

        assert process_file(str(path), collector) == ProcessStatus.FAILURE
        assert collector.kinds == [kind]

    def test_callback_result_ignored(self, tmp_path):
        """치명적 오류는 콜백이 계속을 거부해도 한 번만 보고하고 실패"""
        collector = DiagnosticCollector(proceed=False)
        status = process_file(str(tmp_path / "missing.gcode"), collector)
        assert status == ProcessStatus.FAILURE
        assert collector.kinds == [MessageType.ERR_FILE_NOT_FOUND]


class TestFilePort:
    """LocalFilePort 오류 매핑"""

    def test_read_directory(self, tmp_path):
        with pytest.raises(FileOpenError):
            LocalFilePort(str(tmp_path)).read()

    def test_write_directory(self, tmp_path):
        with pytest.raises(FileCreateError):
            LocalFilePort(str(tmp_path)).write([b"G90\n"])


class TestThumbnailRemoval:
    """원본 썸네일 제거 옵션"""

    def test_block_removed(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        config = ProcessorConfig(remove_original_thumbnail=True)

        assert process_file(str(path), DiagnosticCollector(), config) == ProcessStatus.SUCCESS

        output = path.read_bytes()
        header, body = _split(output)
        expected_body = FULL_GCODE.replace(
            "; thumbnail begin 16x16 100\n"
            "; iVBORw0KGgo\n"
            "; AAAANSUhEUg==\n"
            "; thumbnail end\n",
            "",
        )
        assert body == expected_body.encode("utf-8")
        assert ";thumbnail: data:image/png;base64,iVBORw0KGgoAAAANSUhEUg==" in header
        # 헤더 25줄 + 본문 22줄 + 1
        assert ";file_total_lines: 48" in header
        assert output.count(b"\n") + 1 == 48

    def test_end_marker_at_eof(self, gcode_file):
        """개행 없는 마지막 end 라인도 남김없이 제거"""
        path = gcode_file("G90\n; thumbnail begin 1x1 4\n; AAAA\n; thumbnail end")
        config = ProcessorConfig(remove_original_thumbnail=True)

        assert process_file(str(path), DiagnosticCollector(), config) == ProcessStatus.SUCCESS

        output = path.read_bytes()
        header, body = _split(output)
        assert body == b"G90\n"
        assert ";thumbnail: data:image/png;base64,AAAA" in header
        # 헤더 25줄 + 본문 2줄
        assert ";file_total_lines: 27" in header
        assert output.count(b"\n") + 1 == 27


class TestHeaderEncoding:
    """헤더 인코딩 설정"""

    def test_latin1_header(self, gcode_file):
        path = gcode_file(MINIMAL_GCODE)
        config = ProcessorConfig(header_encoding="latin-1")

        assert process_file(str(path), DiagnosticCollector(), config) == ProcessStatus.SUCCESS
        assert b";nozzle_temperature(\xb0C): 0\n" in path.read_bytes()


class TestHeaderLines:
    """header_lines 단위 테스트"""

    def test_minimal_line_count(self):
        lines = header_lines(HeaderFields(), content_lines=1, version="0.0.0", url="u")
        assert len(lines) == 24
        assert ";file_total_lines: 25" in lines
        assert lines[-3:] == ["", ";Header End", ""]


class TestAnalyzeFile:
    """파일을 수정하지 않는 요약"""

    def test_summary_values(self, gcode_file):
        path = gcode_file(FULL_GCODE)
        fields = analyze_file(str(path))
        assert fields.filament_used_mm == pytest.approx(2345.6)
        assert fields.estimated_time_s == 3723
        assert fields.nozzle_temp_0 == 215.0
        assert not fields.has_second_nozzle
        assert fields.bounding_box["max_x"] == 40.0
        assert path.read_bytes() == FULL_GCODE.encode("utf-8")
