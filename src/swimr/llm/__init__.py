"""Remote analysis service client."""

from swimr.llm.client import HttpAnalysisClient
from swimr.llm.protocol import AnalysisClient

__all__ = [
    "AnalysisClient",
    "HttpAnalysisClient",
]
