from .analysis_job import AnalysisJob
from .error_log import ErrorLog
from .file_record import FileRecord
from .insight import InsightRecord

__all__ = [
    "AnalysisJob",
    "ErrorLog",
    "FileRecord",
    "InsightRecord",
]
