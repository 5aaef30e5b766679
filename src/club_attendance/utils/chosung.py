from __future__ import annotations

HANGUL_BASE = 0xAC00
HANGUL_SYLLABLE_COUNT = 11172
SYLLABLES_PER_INITIAL = 588

CHOSUNG = (
    "ㄱ", "ㄲ", "ㄴ", "ㄷ", "ㄸ", "ㄹ", "ㅁ", "ㅂ", "ㅃ", "ㅅ",
    "ㅆ", "ㅇ", "ㅈ", "ㅉ", "ㅊ", "ㅋ", "ㅌ", "ㅍ", "ㅎ",
)


def get_chosung(text: str) -> str:
    """Reduce every Hangul syllable to its leading consonant."""

    result: list[str] = []
    for char in text:
        offset = ord(char) - HANGUL_BASE
        if 0 <= offset < HANGUL_SYLLABLE_COUNT:
            result.append(CHOSUNG[offset // SYLLABLES_PER_INITIAL])
        else:
            result.append(char)
    return "".join(result)


def match_search(target: str, query: str) -> bool:
    """Return True when ``query`` matches ``target`` literally or by initial consonants."""

    target_folded = target.casefold()
    query_folded = query.casefold()

    if query_folded in target_folded:
        return True

    return get_chosung(query_folded) in get_chosung(target_folded)
