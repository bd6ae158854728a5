"""Text analysis for the search primitive.

Documents and queries share one tokenizer so that indexed terms and parsed
query terms line up. Stemming is delegated to NLTK's Snowball stemmers, which
cover the same language set the index format has always used.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field
import re
from typing import Any

from nltk.stem.snowball import SnowballStemmer


NO_STEMMER = "none"

# ISO 639-1 codes accepted alongside the Snowball language names.
LANGUAGE_ALIASES: dict[str, str] = {
    "ar": "arabic",
    "da": "danish",
    "de": "german",
    "en": "english",
    "es": "spanish",
    "fi": "finnish",
    "fr": "french",
    "hu": "hungarian",
    "it": "italian",
    "nb": "norwegian",
    "nl": "dutch",
    "nn": "norwegian",
    "no": "norwegian",
    "pt": "portuguese",
    "ro": "romanian",
    "ru": "russian",
    "sv": "swedish",
}


class StemmerError(ValueError):
    """Raised when no stemmer exists for a language tag."""


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int
    attributes: MutableMapping[str, Any] = field(default_factory=dict)

    def copy_with(self, **updates: Any) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "attributes": dict(self.attributes),
        }
        data.update(updates)
        return Token(**data)


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens."""

    def __init__(self, pattern: str = r"[\w']+", flags: int = re.UNICODE | re.MULTILINE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


class WordAnalyzer:
    """Tokenizer plus lowercasing; the unstemmed form of every indexed term."""

    def __init__(self) -> None:
        self.tokenizer = RegexTokenizer()
        self.lowercase = LowercaseFilter()

    def __call__(self, text: str) -> list[Token]:
        return list(self.lowercase(self.tokenizer(text)))


def resolve_snowball_language(language: str) -> str | None:
    """Map a language tag to a Snowball stemmer name.

    Returns:
        The Snowball name, or None for the identity stemmer.

    Raises:
        StemmerError: If the tag is not recognized.
    """
    normalized = (language or NO_STEMMER).strip().lower()
    if normalized == NO_STEMMER:
        return None
    if normalized in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[normalized]
    if normalized in SnowballStemmer.languages:
        return normalized
    raise StemmerError(f"No stemmer available for language '{language}'")


class Stem:
    """Language-tagged stemmer; the "none" language leaves words untouched."""

    def __init__(self, language: str = NO_STEMMER) -> None:
        self.language = language
        snowball_name = resolve_snowball_language(language)
        self._stemmer = SnowballStemmer(snowball_name) if snowball_name else None

    def __call__(self, word: str) -> str:
        if self._stemmer is None:
            return word
        return self._stemmer.stem(word)

    def is_none(self) -> bool:
        return self._stemmer is None

    def __repr__(self) -> str:
        return f"Stem({self.language!r})"


class SimpleStopper:
    """Set of stopwords consulted by the query parser."""

    def __init__(self, stopwords: Sequence[str] = ()) -> None:
        self.stopwords = {word.lower() for word in stopwords}

    def __call__(self, word: str) -> bool:
        return word.lower() in self.stopwords

    def __len__(self) -> int:
        return len(self.stopwords)
