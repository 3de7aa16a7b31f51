"""
Location normalization for free-text place names.
"""

import logging
import re
import unicodedata
from typing import Dict

from . import provinces

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s,]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


class LocationNormalizer:
    """
    Canonicalizes place names into comparison keys.

    "  Nampúla " -> "nampula"
    "Avenida Julius Nyerere, Maputo, Moçambique" -> "maputo"

    normalize() never raises: if anything goes wrong it returns the
    conservative fallback transform of the input instead.
    """

    @staticmethod
    def fallback_normalize(text) -> str:
        """First comma-separated segment, trimmed and lower-cased."""
        if text is None:
            return ''
        return str(text).split(',')[0].strip().lower()

    @staticmethod
    def fold(text: str) -> str:
        """Lower-case, strip diacritics and punctuation, collapse whitespace."""
        decomposed = unicodedata.normalize('NFKD', text.lower())
        stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
        stripped = stripped.lower().replace('_', ' ')
        stripped = _PUNCTUATION.sub(' ', stripped)
        return _WHITESPACE.sub(' ', stripped).strip()

    @classmethod
    def normalize(cls, text) -> str:
        try:
            folded = cls.fold(text)
            segments = [s.strip() for s in folded.split(',')]
            segments = [s for s in segments if s]
            if not segments:
                return ''
            if len(segments) == 1:
                return segments[0]

            # Address: prefer the first segment naming a known place.
            for segment in segments:
                if segment in provinces.COUNTRY_NAMES:
                    continue
                if provinces.is_known_place(segment):
                    return segment
            return segments[0]
        except Exception as e:
            fallback = cls.fallback_normalize(text)
            logger.warning(f"Normalization failed for {text!r}: {e}. Using fallback {fallback!r}")
            return fallback


class NormalizationCache:
    """Memoizes normalize() for the lifetime of a single search."""

    def __init__(self, normalizer=LocationNormalizer):
        self.normalizer = normalizer
        self._cache: Dict[str, str] = {}

    def __call__(self, text) -> str:
        if text is None:
            return ''
        key = str(text)
        if key not in self._cache:
            self._cache[key] = self.normalizer.normalize(key)
        return self._cache[key]

    def __len__(self):
        return len(self._cache)


def normalize(text) -> str:
    """Module-level shortcut for LocationNormalizer.normalize."""
    return LocationNormalizer.normalize(text)
