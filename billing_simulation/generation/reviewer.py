"""
Reviewer - optional Review Phase

Asks the oracle whether the intended irregularity can be spotted by a
reader holding only the published bill. Informational: nothing downstream
depends on the answer.
"""

from typing import Optional

from loguru import logger

from billing_simulation.core.models import BillArtifact, ReviewReport
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.prompt_builder import PromptBuilder
from billing_simulation.oracle.schemas import ReviewResponse

FALLBACK_EXPLANATION = "Analysis failed."


class Reviewer:
    def __init__(self, prompt_builder: Optional[PromptBuilder] = None):
        self._prompts = prompt_builder or PromptBuilder()

    def run(self, artifact: BillArtifact, context: GenerationContext) -> ReviewReport:
        prompt = self._prompts.build_review_prompt(artifact)
        result = context.oracle.request(prompt, ReviewResponse, purpose="review")

        if not result.ok:
            logger.warning(f"Review phase unavailable | {result.message}")
            return ReviewReport(detectable_from_bill=False, explanation=FALLBACK_EXPLANATION, missing_info=["N/A"])

        review: ReviewResponse = result.value
        logger.info(f"Review | {artifact.artifact_id} | Detectable: {review.detectable_from_bill}")
        return ReviewReport(
            detectable_from_bill=review.detectable_from_bill,
            explanation=review.explanation,
            missing_info=list(review.missing_info),
        )
