"""
Phonetic key generation.

Soundex and Metaphone codes come from jellyfish; the Cologne phonetic
code (Koelner Phonetik), which suits German and DACH-region names better
than Soundex, is computed here.
"""

import re
import unicodedata
from typing import List

import jellyfish

from .config import PhoneticAlgorithm


_NON_LETTERS = re.compile(r"[^A-Z]")


def _letters(text: str) -> str:
    """Upper-case ASCII letters of a string, diacritics folded."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_LETTERS.sub("", stripped.upper())


def soundex(text: str) -> str:
    """American Soundex code, e.g. ``R163`` for Robert."""
    letters = _letters(text)
    if not letters:
        return ""
    return jellyfish.soundex(letters)


def metaphone(text: str) -> str:
    """Metaphone code of a string."""
    letters = _letters(text)
    if not letters:
        return ""
    return jellyfish.metaphone(letters)


def _cologne_digit(char: str, prev: str, nxt: str, initial: bool) -> str:
    if char in "AEIJOUY":
        return "0"
    if char == "H":
        return ""
    if char == "B":
        return "1"
    if char == "P":
        return "3" if nxt == "H" else "1"
    if char in "DT":
        return "8" if nxt in ("C", "S", "Z") else "2"
    if char in "FVW":
        return "3"
    if char in "GKQ":
        return "4"
    if char == "C":
        if initial:
            return "4" if nxt in ("A", "H", "K", "L", "O", "Q", "R", "U", "X") else "8"
        if prev in ("S", "Z"):
            return "8"
        return "4" if nxt in ("A", "H", "K", "O", "Q", "U", "X") else "8"
    if char == "X":
        return "8" if prev in ("C", "K", "Q") else "48"
    if char == "L":
        return "5"
    if char in "MN":
        return "6"
    if char == "R":
        return "7"
    if char in "SZ":
        return "8"
    return ""


def cologne_phonetic(text: str) -> str:
    """Cologne phonetic code, e.g. ``65752682`` for Mueller-Luedenscheidt.

    Consecutive duplicate digits collapse to one and zeros are dropped
    except in the leading position.
    """
    letters = _letters(text)
    if not letters:
        return ""

    raw: List[str] = []
    for i, char in enumerate(letters):
        prev = letters[i - 1] if i > 0 else ""
        nxt = letters[i + 1] if i + 1 < len(letters) else ""
        raw.append(_cologne_digit(char, prev, nxt, i == 0))

    collapsed = []
    for digit in "".join(raw):
        if not collapsed or collapsed[-1] != digit:
            collapsed.append(digit)

    if not collapsed:
        return ""
    return collapsed[0] + "".join(d for d in collapsed[1:] if d != "0")


_ENCODERS = {
    PhoneticAlgorithm.SOUNDEX: soundex,
    PhoneticAlgorithm.COLOGNE: cologne_phonetic,
    PhoneticAlgorithm.METAPHONE: metaphone,
}


def phonetic_key(text: str, algorithm: PhoneticAlgorithm = PhoneticAlgorithm.SOUNDEX) -> str:
    """Phonetic code of a string with the selected algorithm."""
    return _ENCODERS[PhoneticAlgorithm(algorithm)](text)
