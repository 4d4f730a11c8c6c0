"""
Model router for selecting the model used by each feedback tier.
"""
import logging

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# Feature -> model mapping
MODEL_ROUTING = {
    "basic_feedback": "gpt-4o-mini",  # runs for every completed session
    "enhanced_feedback": "gpt-4o",  # optional deeper pass
}


def get_model_for_feature(feature: str) -> str:
    """
    Get appropriate model for a feature.

    Args:
        feature: Feature name ("basic_feedback" | "enhanced_feedback")

    Returns:
        Model identifier string
    """
    model = MODEL_ROUTING.get(feature)
    if model is None:
        logger.warning(f"No model routed for feature '{feature}', using {DEFAULT_MODEL}")
        return DEFAULT_MODEL
    return model
