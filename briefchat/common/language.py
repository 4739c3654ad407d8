"""
Language Detection

The corpus and its readers are mostly Chinese and English, so the writing
system settles most cases: ideographs mean Chinese, kana means Japanese,
hangul means Korean. langdetect is only asked about Latin-script text.

The router relies on ``same_language`` to keep a rewritten retrieval query
in the language the user wrote in.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Optional

try:
    from langdetect import DetectorFactory
    DetectorFactory.seed = 0  # deterministic profiles
except ImportError:
    pass

# script -> (language, code point ranges); checked in order
SCRIPTS = {
    "Hangul": ("ko", ((0xAC00, 0xD7AF), (0x1100, 0x11FF), (0x3130, 0x318F))),
    "Kana": ("ja", ((0x3040, 0x30FF), (0x31F0, 0x31FF))),
    "CJK": ("zh", ((0x4E00, 0x9FFF), (0x3400, 0x4DBF), (0xF900, 0xFAFF))),
}

# Share of letters a non-Latin script needs to dominate ("DeepSeek 动态" is Chinese)
DOMINANCE_SHARE = 0.15
# A second non-Latin script above this share makes the text Mixed
MIXED_SHARE = 0.2
# Below this length langdetect guesses; trust the script instead
MIN_DETECT_LENGTH = 10
MIN_DETECT_PROB = 0.9


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1
    confidence: float
    script: str         # "Latin", "CJK", "Kana", "Hangul" or "Mixed"

    @property
    def is_english(self) -> bool:
        return self.code == "en"

    @property
    def is_cjk(self) -> bool:
        return self.script in ("CJK", "Kana", "Hangul")


def _script_of(ch: str) -> Optional[str]:
    cp = ord(ch)
    for script, (_, ranges) in SCRIPTS.items():
        if any(start <= cp <= end for start, end in ranges):
            return script
    return "Latin" if ch.isalpha() else None


def dominant_script(text: str) -> str:
    """Script of the letters in ``text``; digits, spaces and punctuation are ignored."""
    counts = Counter(s for s in map(_script_of, text or "") if s)
    total = sum(counts.values())
    if total == 0:
        return "Latin"

    # Japanese writes kanji alongside kana
    if counts["Kana"]:
        return "Kana"

    ranked = sorted(
        ((n, script) for script, n in counts.items() if script != "Latin"),
        reverse=True,
    )
    if not ranked:
        return "Latin"
    if len(ranked) > 1 and ranked[1][0] > total * MIXED_SHARE:
        return "Mixed"

    count, script = ranked[0]
    return script if count >= total * DOMINANCE_SHARE else "Latin"


def detect_language(text: str) -> LanguageInfo:
    cleaned = (text or "").strip()
    if not cleaned:
        return LanguageInfo(code="en", confidence=1.0, script="Latin")

    script = dominant_script(cleaned)
    if script in SCRIPTS:
        return LanguageInfo(code=SCRIPTS[script][0], confidence=0.9, script=script)
    if script == "Mixed" or len(cleaned) < MIN_DETECT_LENGTH:
        return LanguageInfo(code="en", confidence=0.5, script=script)

    try:
        from langdetect import detect_langs
        from langdetect.lang_detect_exception import LangDetectException
    except ImportError:
        return LanguageInfo(code="en", confidence=0.5, script=script)

    try:
        candidates = detect_langs(cleaned)
    except LangDetectException:
        candidates = []

    # Keyword-style Latin text is often labelled fr/nl/af with low confidence
    if candidates and candidates[0].prob >= MIN_DETECT_PROB:
        top = candidates[0]
        return LanguageInfo(code=top.lang.split("-")[0], confidence=round(top.prob, 4), script=script)
    return LanguageInfo(code="en", confidence=0.5, script=script)


def same_language(a: str, b: str) -> bool:
    """True when both texts are dominated by the same script.

    langdetect labels are unstable on the short keyword rewrites the router
    produces, so only the script is compared.
    """
    return dominant_script(a) == dominant_script(b)
