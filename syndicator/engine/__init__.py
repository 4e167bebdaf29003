"""Engine components: fetch → parse → dedup → rewrite."""

from .dedup import DeduplicationEngine, fingerprint, normalize_url
from .extract import ContentExtractor, ExtractedContent
from .feeds import FeedFetcher, RawCandidateItem
from .fetcher import FetchResponse, Fetcher
from .rewrite import RewriteEngine, RewriteResult
from .thread_pool import ThreadPoolManager
from .validator import SourceValidator, ValidationResult

__all__ = [
    "ContentExtractor",
    "DeduplicationEngine",
    "ExtractedContent",
    "FeedFetcher",
    "FetchResponse",
    "Fetcher",
    "RawCandidateItem",
    "RewriteEngine",
    "RewriteResult",
    "SourceValidator",
    "ThreadPoolManager",
    "ValidationResult",
    "fingerprint",
    "normalize_url",
]
