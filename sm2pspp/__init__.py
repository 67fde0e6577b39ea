__version__ = "1.2.0"

from .processor import (
    process_file,
    analyze_file,
    ProcessStatus,
)
from .config import ProcessorConfig, load_config
from .errors import ProcessingError
from .messages import MessageType, Diagnostic, DiagnosticCollector, log_diagnostic
from .scanner import scan, ScanResult

__all__ = [
    'process_file',
    'analyze_file',
    'ProcessStatus',
    'ProcessorConfig',
    'load_config',
    'ProcessingError',
    'MessageType',
    'Diagnostic',
    'DiagnosticCollector',
    'log_diagnostic',
    'scan',
    'ScanResult',
]
