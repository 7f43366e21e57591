"""Tokenization for mixed Japanese and Latin memo text.

Latin and digit runs become lower-cased word tokens. Runs of CJK characters
(kanji, hiragana, katakana) yield their overlapping character bigrams
followed by their single characters, so ``"日報"`` yields
``["日報", "日", "報"]``, and a one-character query such as ``"日"`` still
matches longer runs. Text is NFKC-normalized first so full-width letters
and half-width katakana collapse onto their canonical forms.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Callable, List, Protocol, Set

TokenizeFn = Callable[[str], List[str]]

_TOKEN_RE = re.compile(
    r"(?P<word>[0-9A-Za-z]+)"
    r"|(?P<cjk>[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]+)"
)


class Tokenizer(Protocol):
    def __call__(self, text: str) -> List[str]:
        ...


def _cjk_tokens(run: str) -> List[str]:
    if len(run) == 1:
        return [run]
    bigrams = [run[i : i + 2] for i in range(len(run) - 1)]
    return bigrams + list(run)


def default_tokenizer(text: str, *, stopwords: Set[str] | None = None) -> List[str]:
    """Split ``text`` into ordered tokens. Repeated tokens are preserved."""

    if not text:
        return []

    normalized = unicodedata.normalize("NFKC", text)
    tokens: List[str] = []
    for match in _TOKEN_RE.finditer(normalized):
        word = match.group("word")
        if word is not None:
            tokens.append(word.lower())
        else:
            tokens.extend(_cjk_tokens(match.group("cjk")))

    if stopwords:
        tokens = [token for token in tokens if token not in stopwords]

    return tokens


__all__ = ["TokenizeFn", "Tokenizer", "default_tokenizer"]
