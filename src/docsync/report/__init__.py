"""
Sync report generation and formatting.
"""

from .formatters import (
    export_report_csv,
    export_report_json,
    format_report_console,
    load_report_json,
)
from .generator import (
    STATUS_FAIL,
    STATUS_NO_DATA,
    STATUS_PARTIAL,
    STATUS_PASS,
    generate_report,
)

__all__ = [
    'generate_report',
    'export_report_json',
    'export_report_csv',
    'load_report_json',
    'format_report_console',
    'STATUS_PASS',
    'STATUS_PARTIAL',
    'STATUS_FAIL',
    'STATUS_NO_DATA',
]
