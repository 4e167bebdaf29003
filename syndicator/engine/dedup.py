"""Deduplication layer: URL fingerprints and near-duplicate content checks."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..config import DedupConfig
from .simhash import hamming_distance, parse_simhash

if TYPE_CHECKING:
    from ..store.repository import Repository

_DEFAULT_PORTS = {"http": "80", "https": "443"}


def normalize_url(url: str, config: DedupConfig | None = None) -> str:
    """Canonical form of ``url`` used for fingerprinting.

    Lowercases scheme and host, drops default ports and the fragment, removes
    tracking query parameters, sorts the remaining ones and strips the
    trailing slash of the path.
    """

    config = config or DedupConfig()
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    netloc = host
    if parts.username:
        netloc = f"{parts.username}@{netloc}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != str(port):
        netloc = f"{netloc}:{port}"

    path = parts.path.rstrip("/")
    query_pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not _is_tracking(key, config)
    ]
    query = urlencode(sorted(query_pairs))
    return urlunsplit((scheme, netloc, path, query, ""))


def _is_tracking(key: str, config: DedupConfig) -> bool:
    lowered = key.lower()
    if lowered in config.tracking_params:
        return True
    return any(lowered.startswith(prefix) for prefix in config.tracking_prefixes)


def fingerprint(url: str, config: DedupConfig | None = None) -> str:
    return hashlib.sha256(normalize_url(url, config).encode("utf-8")).hexdigest()


@dataclass
class NearDuplicate:
    article_id: str
    distance: int


class DeduplicationEngine:
    """Answer "does this site already have it?" for candidates and rewrites."""

    def __init__(self, repository: "Repository", config: DedupConfig | None = None) -> None:
        self.repository = repository
        self.config = config or DedupConfig()

    def fingerprint(self, url: str) -> str:
        return fingerprint(url, self.config)

    def lookup(self, site_id: str, candidate_url: str) -> tuple[str, bool]:
        """Fingerprint of ``candidate_url`` and whether the site already holds it."""

        key = self.fingerprint(candidate_url)
        return key, self.repository.fingerprint_exists(site_id, key)

    def is_duplicate(self, site_id: str, candidate_url: str) -> bool:
        """True when any article of the site, whatever its status, has the same fingerprint."""

        return self.lookup(site_id, candidate_url)[1]

    def find_near_duplicate(
        self, site_id: str, article_id: str, content_hash: str
    ) -> NearDuplicate | None:
        """Closest published article within the configured SimHash distance."""

        threshold = self.config.near_duplicate_distance
        if threshold is None:
            return None
        target = parse_simhash(content_hash)
        best: NearDuplicate | None = None
        for other_id, other_hash in self.repository.published_content_hashes(site_id, article_id):
            distance = hamming_distance(target, parse_simhash(other_hash))
            if distance <= threshold and (best is None or distance < best.distance):
                best = NearDuplicate(other_id, distance)
        return best


__all__ = [
    "DeduplicationEngine",
    "NearDuplicate",
    "fingerprint",
    "normalize_url",
]
