"""String similarity and phonetic coding."""

from functools import lru_cache
import Levenshtein

_SOUNDEX_CLASSES = {
    **dict.fromkeys('BFPV', '1'),
    **dict.fromkeys('CGJKQSXZ', '2'),
    **dict.fromkeys('DT', '3'),
    'L': '4',
    **dict.fromkeys('MN', '5'),
    'R': '6',
}

@lru_cache(maxsize=10000)
def similarity(a: str, b: str) -> float:
    """
    Calculate normalized Levenshtein similarity between two strings.

    Args:
        a: First string
        b: Second string

    Returns:
        float: 1.0 for identical strings (including two empty strings),
            otherwise 1 - distance / length of the longer string
    """
    if a == b:
        return 1.0

    max_length = max(len(a), len(b))
    if max_length == 0:
        return 1.0

    return 1 - Levenshtein.distance(a, b) / max_length

@lru_cache(maxsize=10000)
def soundex(text: str) -> str:
    """
    Calculate the 4-character Soundex code of a string.

    The first character is kept upper-cased. A code identical to the one
    before it is dropped, and the first character's own class counts as the
    one before the second character. Letters without a class (vowels, H, W,
    Y) are dropped but still separate runs.
    """
    if not text:
        return ''

    chars = text.upper()
    first, rest = chars[0], chars[1:]
    codes = [_SOUNDEX_CLASSES.get(char, '') for char in rest]

    kept = []
    previous = _SOUNDEX_CLASSES.get(first, '')
    for code in codes:
        if code and code != previous:
            kept.append(code)
        previous = code

    return (first + ''.join(kept) + '000')[:4]
