"""
LLM Runner: builds messages from prompt templates, calls the provider and
returns parsed JSON.
"""
import logging
import json
import re
from typing import Optional, Dict, Any, List, Tuple
from pathlib import Path

from app.core.exceptions import AnalysisBackendError
from app.llm.provider import LLMProvider, LLMResponse
from app.llm.router import get_model_for_feature

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"

SYSTEM_PROMPT = "You are an expert interview coach. Respond with a single JSON object only."
PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class LLMRunner:
    """Orchestrates LLM calls with prompt templates and JSON parsing."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    def _load_prompt_template(self, feature: str, version: str = "v1") -> str:
        """Load prompt template from file."""
        prompt_path = PROMPTS_DIR / f"{feature}_{version}.md"
        if not prompt_path.exists():
            raise AnalysisBackendError(f"Prompt template not found: {prompt_path.name}")
        return prompt_path.read_text(encoding="utf-8")

    def _build_messages(self, prompt_template: str, context: Dict[str, Any]) -> List[Dict[str, str]]:
        """Build messages for LLM from template and context."""
        def substitute(match: re.Match) -> str:
            key = match.group(1)
            if key not in context:
                return match.group(0)
            value = context[key]
            if isinstance(value, (dict, list)):
                value = json.dumps(value, indent=2)
            return str(value) if value not in (None, "") else "Not provided"

        # Single pass, so braces inside substituted text are never expanded
        prompt = PLACEHOLDER_RE.sub(substitute, prompt_template)

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt}
        ]

    def _parse_json_response(self, text: str) -> Dict[str, Any]:
        """Parse a JSON object from the model output (bare or fenced)."""
        fenced = re.search(r'```(?:json)?\s*(\{.*?\})\s*```', text or "", re.DOTALL)
        candidate = fenced.group(1) if fenced else text
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            json_match = re.search(r'\{.*\}', text or "", re.DOTALL)
            if not json_match:
                raise AnalysisBackendError("Analysis backend returned no JSON object")
            try:
                parsed = json.loads(json_match.group())
            except json.JSONDecodeError as e:
                raise AnalysisBackendError("Analysis backend returned malformed JSON", cause=e)

        if not isinstance(parsed, dict):
            raise AnalysisBackendError("Analysis backend returned JSON that is not an object")
        return parsed

    def run(
        self,
        feature: str,
        context: Dict[str, Any],
        prompt_version: str = "v1",
        temperature: float = 0.3,
        max_tokens: Optional[int] = 2000,
    ) -> Tuple[Dict[str, Any], LLMResponse]:
        """
        Run an analysis prompt.

        Args:
            feature: Feature name ("basic_feedback" | "enhanced_feedback")
            context: Values substituted into the prompt template
            prompt_version: Prompt version (default "v1")

        Returns:
            (parsed JSON dict, raw LLMResponse)

        Raises:
            AnalysisBackendError: On any provider failure, timeout or unparseable output
        """
        model = get_model_for_feature(feature)
        messages = self._build_messages(self._load_prompt_template(feature, prompt_version), context)

        try:
            response = self.provider.chat(
                messages=messages,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            )
        except AnalysisBackendError:
            raise
        except Exception as e:
            logger.error(f"LLM run failed: feature={feature}, model={model}: {type(e).__name__}: {e}")
            raise AnalysisBackendError(f"{feature} analysis call failed: {type(e).__name__}", cause=e) from e

        result = self._parse_json_response(response.content)
        logger.info(
            f"LLM run completed: feature={feature}, model={model}, "
            f"tokens={response.tokens_in + response.tokens_out}, cost=${response.cost_estimate:.4f}"
        )
        return result, response
