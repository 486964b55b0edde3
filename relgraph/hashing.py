"""
Semantic hashing for canonical objects.

Objects whose normalized title, body prefix and keywords agree share a
``semantic_hash``; the duplicate detector groups on that value. A shorter
fingerprint over title terms and keywords supports cheap fuzzy comparison.
"""

import hashlib
import re
from typing import Iterable, Optional

from .models import CanonicalObject

BODY_PREFIX_LENGTH = 500
FINGERPRINT_TITLE_TERMS = 5
FINGERPRINT_LENGTH = 16
MIN_WORD_LENGTH = 3

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, drop short words and sort the rest.

    Sorting makes the result independent of word order.
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    words = [word for word in cleaned.split() if len(word) >= MIN_WORD_LENGTH]
    return " ".join(sorted(words))


def _keyword_part(keywords: Iterable[str]) -> str:
    return " ".join(sorted(k.lower() for k in keywords))


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def generate_semantic_hash(
    title: Optional[str] = None,
    body: Optional[str] = None,
    keywords: Optional[Iterable[str]] = None,
) -> str:
    """SHA-256 over normalized title, the first 500 body chars and sorted keywords."""
    parts = []
    if title:
        parts.append(normalize_text(title))
    if body:
        parts.append(normalize_text(body[:BODY_PREFIX_LENGTH]))
    keywords = list(keywords or [])
    if keywords:
        parts.append(_keyword_part(keywords))
    return sha256_hex(" | ".join(parts))


def generate_fingerprint(title: Optional[str] = None, keywords: Optional[Iterable[str]] = None) -> str:
    """16-hex-char digest of the first five normalized title terms and keywords."""
    parts = []
    if title:
        terms = normalize_text(title).split()[:FINGERPRINT_TITLE_TERMS]
        parts.append(" ".join(terms))
    keywords = list(keywords or [])
    if keywords:
        parts.append(_keyword_part(keywords))
    return sha256_hex(" | ".join(parts))[:FINGERPRINT_LENGTH]


def fingerprint_similarity(fp1: str, fp2: str) -> float:
    """Fraction of positions where two fingerprints agree."""
    if fp1 == fp2:
        return 1.0
    matches = sum(1 for a, b in zip(fp1, fp2) if a == b)
    return matches / max(len(fp1), len(fp2))


def is_exact_duplicate(hash1: str, hash2: str) -> bool:
    return hash1 == hash2


def hash_object(obj: CanonicalObject) -> str:
    """Semantic hash computed from an object's title, body and keywords."""
    return generate_semantic_hash(obj.title, obj.body, obj.properties.keywords)


def with_semantic_hash(obj: CanonicalObject, overwrite: bool = False) -> CanonicalObject:
    """Copy of ``obj`` carrying a semantic hash; an existing hash is kept unless ``overwrite``."""
    if obj.semantic_hash and not overwrite:
        return obj
    return obj.model_copy(update={"semantic_hash": hash_object(obj)})
