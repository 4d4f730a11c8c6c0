"""
Feedback scoring configuration.

Single source of truth for the score scale, the overall-score weighting and the
lexicons used by the rule-based analysis. All dimension scores live on 0-100.
"""
from typing import Dict, List

SCORE_MIN: float = 0.0
SCORE_MAX: float = 100.0

# Dimension scores that feed the overall score
SCORE_DIMENSIONS: List[str] = [
    "clarity",
    "conciseness",
    "technical_depth",
    "star_method",
]

# Weights for overall_score (must sum to 1.0)
OVERALL_WEIGHTS: Dict[str, float] = {
    "clarity": 0.30,
    "conciseness": 0.20,
    "technical_depth": 0.30,
    "star_method": 0.20,
}

# Common filler words and phrases detected in candidate speech
FILLER_WORDS: List[str] = [
    "um",
    "uh",
    "like",
    "you know",
    "so",
    "actually",
    "basically",
    "literally",
    "right",
    "i mean",
    "kind of",
    "sort of",
    "just",
    "well",
    "okay",
    "hmm",
]

# Transcript score components (weights sum to 1.0)
TRANSCRIPT_SCORE_WEIGHTS: Dict[str, float] = {
    "coverage": 0.40,     # candidate turns relative to TARGET_CANDIDATE_TURNS
    "answer_rate": 0.40,  # interviewer turns answered by the candidate
    "confidence": 0.20,   # mean speech-to-text confidence
}
TARGET_CANDIDATE_TURNS: int = 6
DEFAULT_STT_CONFIDENCE: float = 1.0  # text / fallback turns carry no confidence

# Conciseness band (mean words per candidate answer)
CONCISE_MIN_WORDS: int = 40
CONCISE_MAX_WORDS: int = 150
CONCISE_FLOOR: float = 20.0

# Clarity penalties
CLARITY_FILLER_PENALTY_PER_RATIO: float = 400.0
CLARITY_FILLER_PENALTY_CAP: float = 60.0
CLARITY_SENTENCE_TARGET_WORDS: int = 20
CLARITY_SENTENCE_PENALTY_PER_WORD: float = 1.5
CLARITY_SENTENCE_PENALTY_CAP: float = 30.0

# Technical depth: base + per distinct technical term
TECHNICAL_BASE_SCORE: float = 20.0
TECHNICAL_POINTS_PER_TERM: float = 10.0

TECHNICAL_TERMS: List[str] = [
    "python", "java", "javascript", "typescript", "react", "node", "sql",
    "postgres", "aws", "gcp", "azure", "docker", "kubernetes", "git",
    "api", "rest", "graphql", "microservices", "database", "cache",
    "redis", "kafka", "latency", "throughput", "scalability", "algorithm",
    "complexity", "architecture", "testing", "deployment", "pipeline",
    "monitoring", "security", "concurrency", "queue", "index", "schema",
]

# STAR method markers
STAR_MARKERS: Dict[str, List[str]] = {
    "situation": ["situation", "when i was", "at my previous", "we were facing", "context", "background", "at the time"],
    "task": ["task", "my goal", "i was responsible", "responsible for", "needed to", "objective", "challenge was"],
    "action": ["i decided", "i implemented", "i built", "i led", "i created", "i worked", "action", "i designed", "i organized"],
    "result": ["result", "as a result", "outcome", "improved", "increased", "reduced", "saved", "achieved", "percent", "%"],
}

# Sentiment / tone lexicons
POSITIVE_WORDS: List[str] = [
    "excited", "enjoy", "love", "great", "passionate", "success", "successful",
    "proud", "happy", "improved", "achieved", "confident", "opportunity", "glad",
    "learned", "effective", "good", "excellent",
]
NEGATIVE_WORDS: List[str] = [
    "difficult", "problem", "failed", "failure", "hate", "bad", "frustrated",
    "worried", "unsure", "struggle", "struggled", "confused", "sorry", "wrong",
    "nervous", "poor",
]
HEDGING_PHRASES: List[str] = [
    "i think", "maybe", "probably", "i guess", "not sure", "perhaps", "i suppose",
]
CONFIDENT_PHRASES: List[str] = [
    "i led", "i built", "i delivered", "i decided", "i owned", "definitely", "clearly",
]
SENTIMENT_POSITIVE_THRESHOLD: float = 0.2
SENTIMENT_NEGATIVE_THRESHOLD: float = -0.2

# Keyword extraction
STOP_WORDS: List[str] = [
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "as", "by", "from", "will", "be", "are", "is", "was", "were",
    "have", "has", "had", "do", "does", "did", "that", "this", "they", "them",
    "their", "your", "about", "into", "which", "what", "when", "where", "would",
    "should", "could", "there", "these", "those", "also", "such", "than",
]
KEYWORD_MIN_LENGTH: int = 4
MAX_CONTEXT_KEYWORDS: int = 20

# Score cut-offs used when phrasing strengths / areas for improvement
STRENGTH_THRESHOLD: float = 70.0
IMPROVEMENT_THRESHOLD: float = 50.0


def get_overall_weight(dimension: str) -> float:
    """Get the overall-score weight for a dimension (0.0 when unknown)."""
    return OVERALL_WEIGHTS.get(dimension, 0.0)


def clamp_score(value: float) -> float:
    """Clamp a score onto the configured 0-100 scale."""
    return max(SCORE_MIN, min(SCORE_MAX, float(value)))
