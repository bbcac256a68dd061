from .files import AnalyzeFileResponse, FileOut, FileUpdateRequest, JobOut
from .insight import InsightOut, InsightPayload, InsightReviewRequest
from .vitals import VitalsCheckResponse, VitalsSnapshot

__all__ = [
    "AnalyzeFileResponse",
    "FileOut",
    "FileUpdateRequest",
    "InsightOut",
    "InsightPayload",
    "InsightReviewRequest",
    "JobOut",
    "VitalsCheckResponse",
    "VitalsSnapshot",
]
