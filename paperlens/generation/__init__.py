from .client import GenerationClient, OpenAIGenerationClient
from .models import AnswerCitation, AnswerResult, SelectionBullet, SelectionSummary, SummaryResult

__all__ = [
    "AnswerCitation",
    "AnswerResult",
    "GenerationClient",
    "OpenAIGenerationClient",
    "SelectionBullet",
    "SelectionSummary",
    "SummaryResult",
]
