"""
Analysis backends for the feedback pipeline.

The pipeline treats analysis as a black box behind AnalysisBackend. Two
implementations ship:

- HeuristicAnalysisBackend: deterministic rule-based scoring, no network.
- LLMAnalysisBackend: an LLM judge (OpenAI by default) with validated, clamped
  JSON output. Any failure surfaces as AnalysisBackendError.

Uses OpenAI if configured, otherwise falls back to rule-based analysis.
"""
import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Optional, Dict, Any, List, Literal, Tuple

from pydantic import BaseModel, Field

from app.core import config
from app.core.exceptions import AnalysisBackendError
from app.core.scoring_config import (
    TECHNICAL_TERMS,
    CONCISE_MIN_WORDS,
    CONCISE_MAX_WORDS,
    CONCISE_FLOOR,
    CLARITY_FILLER_PENALTY_PER_RATIO,
    CLARITY_FILLER_PENALTY_CAP,
    CLARITY_SENTENCE_TARGET_WORDS,
    CLARITY_SENTENCE_PENALTY_PER_WORD,
    CLARITY_SENTENCE_PENALTY_CAP,
    TECHNICAL_BASE_SCORE,
    TECHNICAL_POINTS_PER_TERM,
    STRENGTH_THRESHOLD,
    IMPROVEMENT_THRESHOLD,
    clamp_score,
)
from app.db.models.transcript import TranscriptRole
from app.services import text_analysis

logger = logging.getLogger(__name__)


# ============================================
# Request / Result Models
# ============================================

class TurnInput(BaseModel):
    """A transcript turn as seen by the analysis backend (read-only copy)."""
    sequence_number: int
    role: str
    content: str
    confidence: Optional[float] = None
    timestamp: datetime

    class Config:
        from_attributes = True

    @property
    def is_candidate(self) -> bool:
        return self.role == TranscriptRole.CANDIDATE.value


class AnalysisRequest(BaseModel):
    """Session context plus the ordered transcript."""
    session_id: str
    job_title: str
    company: Optional[str] = None
    interview_type: Optional[str] = None
    jd_context: Optional[str] = None
    resume_snapshot: Optional[Any] = None
    duration_seconds: Optional[int] = None
    turns: List[TurnInput] = Field(default_factory=list, description="Ordered by sequence_number")
    filler_word_count: int = 0
    context_keywords: List[str] = Field(default_factory=list)

    @property
    def candidate_turns(self) -> List[TurnInput]:
        return [turn for turn in self.turns if turn.is_candidate]


class BasicAnalysisResult(BaseModel):
    """Raw basic-tier scores and text (all scores 0-100)."""
    clarity_score: float = Field(..., ge=0, le=100)
    conciseness_score: float = Field(..., ge=0, le=100)
    technical_depth_score: float = Field(..., ge=0, le=100)
    star_method_score: float = Field(..., ge=0, le=100)
    summary: str
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict, description="Backend-specific scoring inputs")
    backend: str
    model: Optional[str] = None
    tokens_in: int = 0
    tokens_out: int = 0
    cost_estimate: float = 0.0


class SentimentSample(BaseModel):
    """One point of the sentiment trend line."""
    segment: int = Field(..., ge=1)
    sequence_number: Optional[int] = None
    timestamp: int = Field(..., ge=0, description="Milliseconds since the first turn")
    sentiment: Literal["positive", "neutral", "negative"]
    score: float = Field(..., ge=-1, le=1)


class EnhancedAnalysisResult(BaseModel):
    """Raw enhanced-tier analysis."""
    tone_analysis: Dict[str, Any]
    sentiment_progression: List[SentimentSample]
    answer_analysis: List[Dict[str, Any]] = Field(default_factory=list)
    action_plan: Dict[str, List[str]] = Field(default_factory=dict)
    backend: str
    model: Optional[str] = None
    tokens_in: int = 0
    tokens_out: int = 0
    cost_estimate: float = 0.0


# ============================================
# Shared helpers
# ============================================

def extract_qa_pairs(turns: List[TurnInput]) -> List[Dict[str, Any]]:
    """Interviewer turns immediately followed by a candidate turn."""
    pairs = []
    for current, following in zip(turns, turns[1:]):
        if not current.is_candidate and following.is_candidate:
            pairs.append({
                "question_number": len(pairs) + 1,
                "question": current.content,
                "answer": following.content,
                "answer_sequence_number": following.sequence_number,
            })
    return pairs


def turn_offsets_ms(turns: List[TurnInput]) -> Dict[int, int]:
    """Milliseconds from the first turn, keyed by sequence_number (never negative)."""
    if not turns:
        return {}
    base = turns[0].timestamp
    return {
        turn.sequence_number: max(0, int((turn.timestamp - base).total_seconds() * 1000))
        for turn in turns
    }


def _round(value: float) -> float:
    return round(clamp_score(value), 2)


def _coerce_score(payload: Dict[str, Any], key: str) -> float:
    if key not in payload or payload[key] is None:
        raise AnalysisBackendError(f"Analysis backend response is missing '{key}'")
    try:
        return _round(float(payload[key]))
    except (TypeError, ValueError) as e:
        raise AnalysisBackendError(f"Analysis backend returned a non-numeric '{key}'", cause=e)


def _coerce_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if str(item).strip()]


class AnalysisBackend(ABC):
    """Black-box scorer used by the feedback pipeline."""

    name = "abstract"

    @abstractmethod
    def analyze_basic(self, request: AnalysisRequest) -> BasicAnalysisResult:
        """Score clarity, conciseness, technical depth and STAR adherence."""

    @abstractmethod
    def analyze_enhanced(self, request: AnalysisRequest) -> EnhancedAnalysisResult:
        """Tone per segment, sentiment progression and per-answer analysis."""


# ============================================
# Rule-based backend
# ============================================

class HeuristicAnalysisBackend(AnalysisBackend):
    """Deterministic rule-based scoring (works without an API key)."""

    name = "heuristic"

    def _clarity(self, words: int, sentences: int, fillers: int) -> float:
        filler_ratio = fillers / max(words, 1)
        filler_penalty = min(CLARITY_FILLER_PENALTY_CAP, filler_ratio * CLARITY_FILLER_PENALTY_PER_RATIO)
        avg_sentence = words / max(sentences, 1)
        sentence_penalty = min(
            CLARITY_SENTENCE_PENALTY_CAP,
            max(0.0, avg_sentence - CLARITY_SENTENCE_TARGET_WORDS) * CLARITY_SENTENCE_PENALTY_PER_WORD,
        )
        return _round(100 - filler_penalty - sentence_penalty)

    def _conciseness(self, avg_answer_words: float) -> float:
        if avg_answer_words < CONCISE_MIN_WORDS:
            return _round(max(CONCISE_FLOOR, 100 * avg_answer_words / CONCISE_MIN_WORDS))
        if avg_answer_words > CONCISE_MAX_WORDS:
            return _round(max(CONCISE_FLOOR, 100 - (avg_answer_words - CONCISE_MAX_WORDS) * 0.4))
        return 100.0

    def _technical_depth(self, answers_text: str, context_keywords: List[str]) -> Tuple[float, List[str]]:
        vocabulary = set(text_analysis.tokenize(answers_text))
        terms = set(TECHNICAL_TERMS) | set(context_keywords)
        hits = sorted(vocabulary & terms)
        return _round(TECHNICAL_BASE_SCORE + TECHNICAL_POINTS_PER_TERM * len(hits)), hits

    def _star_method(self, answers: List[str]) -> Tuple[float, List[Dict[str, bool]]]:
        components = [text_analysis.star_components(answer) for answer in answers]
        if not components:
            return 0.0, components
        per_answer = [sum(item.values()) / len(item) for item in components]
        return _round(100 * sum(per_answer) / len(per_answer)), components

    def _phrase_feedback(self, scores: Dict[str, float], fillers: int) -> Tuple[List[str], List[str]]:
        labels = {
            "clarity": ("Answers were clear and easy to follow.",
                        "Reduce filler words and break long sentences into shorter ones."),
            "conciseness": ("Answers were well-sized: complete without rambling.",
                            "Aim for answers of roughly 40-150 words that get to the point."),
            "technical_depth": ("Answers showed relevant technical depth for the role.",
                                "Name the concrete tools, techniques and trade-offs you used."),
            "star_method": ("Behavioral answers followed a clear Situation-Task-Action-Result structure.",
                            "Structure behavioral answers with the STAR method and close with a measurable result."),
        }
        strengths, improvements = [], []
        for dimension, score in scores.items():
            strength, improvement = labels[dimension]
            if score >= STRENGTH_THRESHOLD:
                strengths.append(strength)
            elif score < IMPROVEMENT_THRESHOLD:
                improvements.append(improvement)
        # Clarity advice already covers fillers when clarity is low
        if fillers >= 5 and scores["clarity"] >= IMPROVEMENT_THRESHOLD:
            improvements.append(f"Filler words came up {fillers} times; pause instead of filling silence.")
        return strengths, improvements

    def analyze_basic(self, request: AnalysisRequest) -> BasicAnalysisResult:
        answers = [turn.content for turn in request.candidate_turns]
        answers_text = " ".join(answers)
        words = text_analysis.word_count(answers_text)
        sentences = sum(text_analysis.sentence_count(answer) for answer in answers)
        avg_answer_words = words / max(len(answers), 1)

        technical, technical_hits = self._technical_depth(answers_text, request.context_keywords)
        star, star_components = self._star_method(answers)
        scores = {
            "clarity": self._clarity(words, sentences, request.filler_word_count),
            "conciseness": self._conciseness(avg_answer_words),
            "technical_depth": technical,
            "star_method": star,
        }
        strengths, improvements = self._phrase_feedback(scores, request.filler_word_count)

        summary = (
            f"Across {len(answers)} answers for the {request.job_title} interview, "
            f"clarity scored {scores['clarity']:.0f}, conciseness {scores['conciseness']:.0f}, "
            f"technical depth {scores['technical_depth']:.0f} and STAR structure {scores['star_method']:.0f} out of 100."
        )

        return BasicAnalysisResult(
            clarity_score=scores["clarity"],
            conciseness_score=scores["conciseness"],
            technical_depth_score=scores["technical_depth"],
            star_method_score=scores["star_method"],
            summary=summary,
            strengths=strengths,
            areas_for_improvement=improvements,
            details={
                "candidate_words": words,
                "candidate_sentences": sentences,
                "avg_answer_words": round(avg_answer_words, 2),
                "technical_terms": technical_hits,
                "star_components": star_components,
            },
            backend=self.name,
        )

    def analyze_enhanced(self, request: AnalysisRequest) -> EnhancedAnalysisResult:
        offsets = turn_offsets_ms(request.turns)
        segments, samples = [], []
        for index, turn in enumerate(request.candidate_turns, start=1):
            score = text_analysis.sentiment_score(turn.content)
            tone = text_analysis.classify_tone(turn.content)
            segments.append({
                "segment": index,
                "sequence_number": turn.sequence_number,
                "tone": tone,
                "confidence": round(100 * (turn.confidence if turn.confidence is not None else 1.0), 1),
                "notes": f"{text_analysis.word_count(turn.content)} words",
            })
            samples.append(SentimentSample(
                segment=index,
                sequence_number=turn.sequence_number,
                timestamp=offsets.get(turn.sequence_number, 0),
                sentiment=text_analysis.sentiment_label(score),
                score=score,
            ))

        tone_counts = Counter(segment["tone"] for segment in segments)
        overall_tone = tone_counts.most_common(1)[0][0] if tone_counts else "neutral"
        avg_words = (
            sum(text_analysis.word_count(turn.content) for turn in request.candidate_turns)
            / max(len(request.candidate_turns), 1)
        )
        if avg_words < CONCISE_MIN_WORDS:
            style = "brief"
        elif avg_words > CONCISE_MAX_WORDS:
            style = "expansive"
        else:
            style = "balanced"
        energetic = tone_counts.get("enthusiastic", 0) + tone_counts.get("confident", 0)
        energy = "high" if energetic * 2 > len(segments) else ("low" if tone_counts.get("hesitant", 0) * 2 > len(segments) else "moderate")

        answer_analysis = []
        for pair in extract_qa_pairs(request.turns):
            star = text_analysis.star_components(pair["answer"])
            missing = [component for component, present in star.items() if not present]
            answer_analysis.append({
                "question_number": pair["question_number"],
                "question": pair["question"],
                "answer_sequence_number": pair["answer_sequence_number"],
                "word_count": text_analysis.word_count(pair["answer"]),
                "star_components": star,
                "strengths": [f"Covers {component}" for component, present in star.items() if present],
                "weaknesses": [f"Missing {component}" for component in missing],
                "suggested_improvement": (
                    "Add " + ", ".join(missing) + " to complete the STAR structure." if missing
                    else "Keep this structure and quantify the result where possible."
                ),
            })

        action_plan = {
            "immediate": ["Rehearse answers aloud and replace filler words with short pauses."],
            "short_term": ["Prepare three STAR stories that end with a measurable result."],
            "long_term": ["Build a bank of ten STAR stories mapped to the job description keywords."],
        }

        return EnhancedAnalysisResult(
            tone_analysis={
                "overall_tone": overall_tone,
                "communication_style": style,
                "perceived_energy": energy,
                "segments": segments,
            },
            sentiment_progression=samples,
            answer_analysis=answer_analysis,
            action_plan=action_plan,
            backend=self.name,
        )


# ============================================
# LLM-backed backend
# ============================================

class LLMAnalysisBackend(AnalysisBackend):
    """LLM judge; output is validated and clamped before it reaches the pipeline."""

    name = "llm"

    def __init__(self, runner=None, provider=None):
        from app.llm.runner import LLMRunner

        if runner is None:
            if provider is None:
                from app.llm.openai_provider import OpenAIProvider
                provider = OpenAIProvider()
            runner = LLMRunner(provider)
        self.runner = runner

    @staticmethod
    def _format_transcript(turns: List[TurnInput]) -> str:
        return "\n".join(f"[{turn.sequence_number}] {turn.role.upper()}: {turn.content}" for turn in turns)

    def _base_context(self, request: AnalysisRequest) -> Dict[str, Any]:
        return {
            "job_title": request.job_title,
            "company": request.company,
            "interview_type": request.interview_type,
            "context_keywords": ", ".join(request.context_keywords),
            "resume_snapshot": request.resume_snapshot,
        }

    def analyze_basic(self, request: AnalysisRequest) -> BasicAnalysisResult:
        context = self._base_context(request)
        context.update({
            "filler_word_count": request.filler_word_count,
            "transcript": self._format_transcript(request.turns),
        })
        payload, response = self.runner.run("basic_feedback", context)

        return BasicAnalysisResult(
            clarity_score=_coerce_score(payload, "clarity_score"),
            conciseness_score=_coerce_score(payload, "conciseness_score"),
            technical_depth_score=_coerce_score(payload, "technical_depth_score"),
            star_method_score=_coerce_score(payload, "star_method_score"),
            summary=str(payload.get("summary") or "").strip() or "No summary provided.",
            strengths=_coerce_str_list(payload.get("strengths")),
            areas_for_improvement=_coerce_str_list(payload.get("areas_for_improvement")),
            details={"finish_reason": response.metadata.get("finish_reason")},
            backend=self.name,
            model=response.model,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            cost_estimate=response.cost_estimate,
        )

    def _parse_samples(self, raw: Any, request: AnalysisRequest) -> List[SentimentSample]:
        if not isinstance(raw, list):
            raise AnalysisBackendError("Analysis backend response is missing 'sentiment_progression'")
        offsets = turn_offsets_ms(request.turns)
        candidates = request.candidate_turns
        samples = []
        for index, item in enumerate(raw, start=1):
            if not isinstance(item, dict):
                raise AnalysisBackendError("Malformed sentiment_progression entry")
            try:
                score = max(-1.0, min(1.0, float(item.get("score", 0.0))))
            except (TypeError, ValueError) as e:
                raise AnalysisBackendError("Non-numeric sentiment score", cause=e)
            label = str(item.get("sentiment", "")).lower()
            if label not in ("positive", "neutral", "negative"):
                label = text_analysis.sentiment_label(score)
            # Our own turn clock wins over model-reported timestamps
            turn = candidates[index - 1] if index <= len(candidates) else None
            previous = samples[-1].timestamp if samples else 0
            if turn:
                timestamp = offsets.get(turn.sequence_number, 0)
            else:
                try:
                    timestamp = max(previous, int(float(item.get("timestamp") or 0)))
                except (TypeError, ValueError, OverflowError):
                    # e.g. "00:30"; keep the progression ordered
                    timestamp = previous
            samples.append(SentimentSample(
                segment=index,
                sequence_number=turn.sequence_number if turn else None,
                timestamp=timestamp,
                sentiment=label,
                score=round(score, 3),
            ))
        return samples

    def analyze_enhanced(self, request: AnalysisRequest) -> EnhancedAnalysisResult:
        offsets = turn_offsets_ms(request.turns)
        qa_pairs = extract_qa_pairs(request.turns)
        context = self._base_context(request)
        context.update({
            "duration_seconds": request.duration_seconds,
            "qa_count": len(qa_pairs),
            "qa_pairs": "\n".join(
                f"Q{pair['question_number']}: {pair['question']}\nA{pair['question_number']}: {pair['answer']}"
                for pair in qa_pairs
            ),
            "candidate_turns": "\n".join(
                f"{index}. ({offsets.get(turn.sequence_number, 0)} ms) {turn.content}"
                for index, turn in enumerate(request.candidate_turns, start=1)
            ),
        })
        payload, response = self.runner.run("enhanced_feedback", context)

        tone_analysis = payload.get("tone_analysis")
        if not isinstance(tone_analysis, dict):
            raise AnalysisBackendError("Analysis backend response is missing 'tone_analysis'")

        action_plan = payload.get("action_plan") or {}
        return EnhancedAnalysisResult(
            tone_analysis=tone_analysis,
            sentiment_progression=self._parse_samples(payload.get("sentiment_progression"), request),
            answer_analysis=[item for item in (payload.get("answer_analysis") or []) if isinstance(item, dict)],
            action_plan={
                key: _coerce_str_list(action_plan.get(key))
                for key in ("immediate", "short_term", "long_term")
            } if isinstance(action_plan, dict) else {},
            backend=self.name,
            model=response.model,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            cost_estimate=response.cost_estimate,
        )


def get_analysis_backend(kind: Optional[str] = None) -> AnalysisBackend:
    """
    Select the analysis backend.

    Args:
        kind: "openai" | "heuristic" | "auto" (defaults to ANALYSIS_BACKEND)
    """
    kind = (kind or config.ANALYSIS_BACKEND or "auto").lower()
    if kind == "heuristic":
        return HeuristicAnalysisBackend()
    if kind == "openai":
        return LLMAnalysisBackend()
    if config.OPENAI_API_KEY:
        try:
            return LLMAnalysisBackend()
        except ValueError as e:
            logger.warning(f"LLM backend unavailable ({e}), using rule-based analysis")
    else:
        logger.info("OPENAI_API_KEY not configured - using rule-based analysis")
    return HeuristicAnalysisBackend()
