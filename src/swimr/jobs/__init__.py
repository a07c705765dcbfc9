"""Analysis job ledger and fingerprinting."""

from swimr.jobs.fingerprint import context_hash, make_cache_key, quick_hash
from swimr.jobs.handler import AnalysisJobHandler
from swimr.jobs.ledger import AnalysisJobLedger

__all__ = [
    "AnalysisJobHandler",
    "AnalysisJobLedger",
    "context_hash",
    "make_cache_key",
    "quick_hash",
]
