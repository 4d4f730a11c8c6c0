"""
Rule-based text analysis helpers for interview transcripts.

Pure functions only: every result is a deterministic function of its input text,
so scores recomputed from the same transcript are always identical.
"""
import re
from collections import Counter
from typing import Dict, List, Iterable, Optional, Any

from app.core.scoring_config import (
    FILLER_WORDS,
    STAR_MARKERS,
    POSITIVE_WORDS,
    NEGATIVE_WORDS,
    HEDGING_PHRASES,
    CONFIDENT_PHRASES,
    STOP_WORDS,
    KEYWORD_MIN_LENGTH,
    MAX_CONTEXT_KEYWORDS,
    SENTIMENT_POSITIVE_THRESHOLD,
    SENTIMENT_NEGATIVE_THRESHOLD,
)

WORD_RE = re.compile(r"[a-z0-9][a-z0-9+#.\-']*")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

_STOP_WORDS = set(STOP_WORDS)


def _phrase_pattern(phrase: str) -> re.Pattern:
    return re.compile(r"\b" + r"\s+".join(re.escape(part) for part in phrase.split()) + r"\b")


_FILLER_PATTERNS = {word: _phrase_pattern(word) for word in FILLER_WORDS}


def tokenize(text: str) -> List[str]:
    """Lower-case word tokens, trailing punctuation stripped."""
    return [token.strip(".-'") for token in WORD_RE.findall((text or "").lower()) if token.strip(".-'")]


def word_count(text: str) -> int:
    return len(tokenize(text))


def sentence_count(text: str) -> int:
    sentences = [s for s in SENTENCE_SPLIT_RE.split(text or "") if s.strip()]
    return max(1, len(sentences))


def count_filler_words(text: str) -> Dict[str, int]:
    """
    Count filler word occurrences as whole words/phrases.

    Returns:
        Mapping of filler word -> occurrences, only for fillers that occur
    """
    lowered = (text or "").lower()
    counts = {}
    for word, pattern in _FILLER_PATTERNS.items():
        matches = pattern.findall(lowered)
        if matches:
            counts[word] = len(matches)
    return counts


def total_filler_count(counts: Dict[str, int]) -> int:
    return sum(counts.values())


def most_common_fillers(counts: Dict[str, int], limit: int = 3) -> List[Dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"word": word, "count": count} for word, count in ranked[:limit]]


def merge_counts(counts: Iterable[Dict[str, int]]) -> Dict[str, int]:
    merged = Counter()
    for item in counts:
        merged.update(item)
    return dict(merged)


def extract_keywords(text: Optional[str], limit: int = MAX_CONTEXT_KEYWORDS) -> List[str]:
    """Most frequent non-stop-words of at least KEYWORD_MIN_LENGTH characters."""
    if not text:
        return []
    words = [
        word for word in tokenize(text)
        if len(word) >= KEYWORD_MIN_LENGTH and word not in _STOP_WORDS and not word.isdigit()
    ]
    freq = Counter(words)
    # Ties broken alphabetically so the list is stable
    ranked = sorted(freq.items(), key=lambda item: (-item[1], item[0]))
    return [word for word, _ in ranked[:limit]]


def flatten_resume(resume_snapshot: Any) -> str:
    """Flatten a resume snapshot (dict / list / str) into plain text."""
    if resume_snapshot is None:
        return ""
    if isinstance(resume_snapshot, str):
        return resume_snapshot
    if isinstance(resume_snapshot, dict):
        return " ".join(flatten_resume(value) for value in resume_snapshot.values())
    if isinstance(resume_snapshot, (list, tuple)):
        return " ".join(flatten_resume(value) for value in resume_snapshot)
    return str(resume_snapshot)


def context_keywords(jd_context: Optional[str], resume_snapshot: Any, job_title: Optional[str] = None) -> List[str]:
    """Keywords from the job title, job description and resume, deduplicated in that order."""
    keywords: List[str] = []
    for source in (job_title, jd_context, flatten_resume(resume_snapshot)):
        for word in extract_keywords(source):
            if word not in keywords:
                keywords.append(word)
    return keywords[:MAX_CONTEXT_KEYWORDS * 2]


def keyword_overlap(text: str, keywords: List[str]) -> List[str]:
    vocabulary = set(tokenize(text))
    return [keyword for keyword in keywords if keyword in vocabulary]


def star_components(text: str) -> Dict[str, bool]:
    """Which of situation / task / action / result an answer touches on."""
    lowered = (text or "").lower()
    return {
        component: any(marker in lowered for marker in markers)
        for component, markers in STAR_MARKERS.items()
    }


def _count_phrases(lowered: str, phrases: List[str]) -> int:
    return sum(len(_phrase_pattern(phrase).findall(lowered)) for phrase in phrases)


def sentiment_score(text: str) -> float:
    """Lexicon sentiment in [-1, 1]."""
    tokens = tokenize(text)
    positive = sum(1 for token in tokens if token in POSITIVE_WORDS)
    negative = sum(1 for token in tokens if token in NEGATIVE_WORDS)
    if positive + negative == 0:
        return 0.0
    return round((positive - negative) / (positive + negative), 3)


def sentiment_label(score: float) -> str:
    if score > SENTIMENT_POSITIVE_THRESHOLD:
        return "positive"
    if score < SENTIMENT_NEGATIVE_THRESHOLD:
        return "negative"
    return "neutral"


def classify_tone(text: str) -> str:
    """Coarse tone label: confident, hesitant, enthusiastic or neutral."""
    lowered = (text or "").lower()
    hedges = _count_phrases(lowered, HEDGING_PHRASES) + total_filler_count(count_filler_words(lowered))
    confident = _count_phrases(lowered, CONFIDENT_PHRASES)
    score = sentiment_score(lowered)

    words = max(1, word_count(lowered))
    if hedges / words > 0.08 and hedges > confident:
        return "hesitant"
    if score > 0.5 and "!" in (text or ""):
        return "enthusiastic"
    if confident > 0 and confident >= hedges:
        return "confident"
    if score > 0.5:
        return "enthusiastic"
    return "neutral"
