"""Memoized stemmers, one per language tag."""

from __future__ import annotations

import logging

from search_bridge.errors import UnsupportedLanguageError
from search_bridge.search import NO_STEMMER, Stem, StemmerError


logger = logging.getLogger(__name__)


class StemmerCache:
    """Create-if-absent cache of stemmers keyed by language tag.

    The ``"none"`` stemmer exists from the start and leaves words unchanged.
    """

    def __init__(self) -> None:
        self._stemmers: dict[str, Stem] = {NO_STEMMER: Stem(NO_STEMMER)}

    def get(self, language: str) -> Stem:
        """Return the stemmer for ``language``, creating it on first use.

        Raises:
            UnsupportedLanguageError: If no stemmer exists for the tag.
        """
        stemmer = self._stemmers.get(language)
        if stemmer is None:
            try:
                stemmer = Stem(language)
            except StemmerError as exc:
                raise UnsupportedLanguageError(language) from exc
            self._stemmers[language] = stemmer
            logger.debug("Created stemmer for language %s", language)
        return stemmer

    @property
    def none(self) -> Stem:
        return self._stemmers[NO_STEMMER]

    def __contains__(self, language: object) -> bool:
        return language in self._stemmers

    def __len__(self) -> int:
        return len(self._stemmers)
