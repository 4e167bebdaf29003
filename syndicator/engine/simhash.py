"""64-bit SimHash over word shingles."""

from __future__ import annotations

import hashlib
import re

_TOKEN = re.compile(r"\w+", re.UNICODE)
BITS = 64


def _tokens(text: str, shingle: int = 3) -> list[str]:
    words = _TOKEN.findall(text.lower())
    if len(words) < shingle:
        return words
    return [" ".join(words[i : i + shingle]) for i in range(len(words) - shingle + 1)]


def simhash(text: str) -> int:
    vector = [0] * BITS
    for token in _tokens(text):
        digest = int.from_bytes(hashlib.md5(token.encode("utf-8")).digest()[:8], "big")
        for bit in range(BITS):
            vector[bit] += 1 if digest >> bit & 1 else -1
    value = 0
    for bit, weight in enumerate(vector):
        if weight > 0:
            value |= 1 << bit
    return value


def format_simhash(value: int) -> str:
    return f"{value:016x}"


def parse_simhash(value: str) -> int:
    return int(value, 16)


def hamming_distance(left: int, right: int) -> int:
    return bin(left ^ right).count("1")


def content_hash(text: str) -> str:
    return format_simhash(simhash(text))


__all__ = ["content_hash", "format_simhash", "hamming_distance", "parse_simhash", "simhash"]
