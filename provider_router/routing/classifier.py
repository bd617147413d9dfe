"""Task classification for provider routing.

The TaskClassifier maps free text to a task category, a coarse complexity
level and a tool-need signal. It is a pure function of the message: no I/O,
no state, identical input always yields identical output.

Algorithm:
- Every category owns an ordered list of case-insensitive patterns
- A category's score is the number of its patterns found in the message
- Highest score wins; ties go to the lexicographically smallest category
  value so the result never depends on table iteration order
- No match at all: general-conversation with confidence 0.3
- Otherwise confidence = top score / sum of all scores

Complexity is a length heuristic per category family (code tasks are never
below "medium"). Token estimate is ceil(len(message) / 4).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import StrEnum

import structlog

log = structlog.get_logger(__name__)


class TaskCategory(StrEnum):
    """Inferred kind of request."""

    CODE_GENERATION = "code-generation"
    CODE_DEBUGGING = "code-debugging"
    CODE_REVIEW = "code-review"
    REASONING = "reasoning"
    CREATIVE_WRITING = "creative-writing"
    TRANSLATION = "translation"
    MATH_CALCULATION = "math-calculation"
    DATA_ANALYSIS = "data-analysis"
    GENERAL_CONVERSATION = "general-conversation"
    SUMMARIZATION = "summarization"
    RESEARCH = "research"


class Complexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TaskClassification:
    """Result of classifying a single message.

    Attributes:
        type: Winning task category
        confidence: Share of matched patterns belonging to the winner (0.0-1.0)
        complexity: Coarse complexity level
        requires_tools: Whether the message hints at weather/search/math/current data
        estimated_tokens: Rough prompt size, ceil(len(message) / 4)
    """

    type: TaskCategory
    confidence: float
    complexity: Complexity
    requires_tools: bool
    estimated_tokens: int

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be 0.0-1.0, got {self.confidence}")
        if self.estimated_tokens < 0:
            raise ValueError("estimated_tokens cannot be negative")


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


TASK_PATTERNS: dict[TaskCategory, tuple[re.Pattern[str], ...]] = {
    TaskCategory.CODE_GENERATION: _compile(
        r"write\s+(a|an|some)?\s*(function|class|component|script|program|code)",
        r"create\s+(a|an)?\s*(function|class|component|api|endpoint)",
        r"\bimplement\s+",
        r"build\s+(a|an)?\s*(app|feature|component|function)",
        r"generate\s+(code|function|class)",
        r"\b(javascript|typescript|python|java|rust|golang|c\+\+|react|vue|angular)\b",
    ),
    TaskCategory.CODE_DEBUGGING: _compile(
        r"\bdebug|fix\s+(this|the|my)\s+(code|error|bug)",
        r"why\s+(isn't|doesn't|won't)\s+(this|my)\s+code",
        r"\berror|exception|stack\s+trace",
        r"not\s+working",
        r"\bbroken\b",
    ),
    TaskCategory.CODE_REVIEW: _compile(
        r"review\s+(this|my)\s+code",
        r"what\s+(do\s+you\s+)?think\s+(of|about)\s+(this|my)\s+code",
        r"\boptimize|improve\s+(this|my)\s+code",
        r"best\s+practices",
    ),
    TaskCategory.REASONING: _compile(
        r"\bwhy\s+(does|is|should|would)",
        r"\bexplain\s+(why|how|the)",
        r"what\s+is\s+the\s+(reason|logic|rationale)",
        r"\banaly[sz]e",
        r"\bcompare|contrast",
        r"pros\s+and\s+cons",
        r"\bshould\s+i\b",
    ),
    TaskCategory.CREATIVE_WRITING: _compile(
        r"write\s+(a|an)?\s*(story|poem|essay|article|blog|script)",
        r"\bcreative|imaginative",
        r"\bfiction|narrative",
        r"\bbrainstorm",
        r"come\s+up\s+with\s+(ideas|names|titles)",
    ),
    TaskCategory.TRANSLATION: _compile(
        r"\btranslate\s+(this|to|from|into)",
        r"\b(chinese|spanish|french|german|japanese|korean|arabic|hindi|russian)\b",
        r"what\s+(does|is)\s+.*\s+in\s+(english|spanish|french)",
    ),
    TaskCategory.MATH_CALCULATION: _compile(
        r"\b(calculate|compute|solve)",
        r"what\s+is\s+\d+\s*[+\-*/^]",
        r"\bmath|mathematical|equation",
        r"\bderivative|integral|probability|statistics",
    ),
    TaskCategory.DATA_ANALYSIS: _compile(
        r"analy[sz]e\s+(this|the)\s+data",
        r"data\s+analysis",
        r"\bvisuali[sz]e|\bchart|\bgraph",
        r"\bstatistics|trends|patterns",
        r"\bdataset",
    ),
    TaskCategory.SUMMARIZATION: _compile(
        r"\bsummari[sz]e|summary",
        r"\btl;?dr\b",
        r"key\s+points",
        r"brief\s+(overview|summary)",
        r"\bin\s+short\b",
    ),
    TaskCategory.RESEARCH: _compile(
        r"\bresearch|investigate",
        r"find\s+(information|data|sources)",
        r"what\s+(are|is)\s+the\s+(latest|current|recent)",
        r"tell\s+me\s+about",
        r"learn\s+about",
    ),
    TaskCategory.GENERAL_CONVERSATION: _compile(
        r"\b(hello|hi|hey|greetings)\b",
        r"how\s+are\s+you",
        r"\bthank",
        r"what\s+can\s+you\s+do",
    ),
}

TOOL_PATTERNS: tuple[re.Pattern[str], ...] = _compile(
    r"\b(weather|temperature|forecast)",
    r"\bsearch|\bgoogle\b|find\s+online",
    r"\b(calculate|math)",
    r"\b(current|today|now|latest)\b",
)

TASK_DESCRIPTIONS: dict[TaskCategory, str] = {
    TaskCategory.CODE_GENERATION: "Writing code",
    TaskCategory.CODE_DEBUGGING: "Debugging code",
    TaskCategory.CODE_REVIEW: "Reviewing code",
    TaskCategory.REASONING: "Logical reasoning",
    TaskCategory.CREATIVE_WRITING: "Creative writing",
    TaskCategory.TRANSLATION: "Translation",
    TaskCategory.MATH_CALCULATION: "Mathematical calculation",
    TaskCategory.DATA_ANALYSIS: "Data analysis",
    TaskCategory.GENERAL_CONVERSATION: "General conversation",
    TaskCategory.SUMMARIZATION: "Summarization",
    TaskCategory.RESEARCH: "Research",
}

CODE_TASKS = frozenset(
    {TaskCategory.CODE_GENERATION, TaskCategory.CODE_DEBUGGING, TaskCategory.CODE_REVIEW}
)
OPEN_ENDED_TASKS = frozenset(
    {TaskCategory.CREATIVE_WRITING, TaskCategory.REASONING, TaskCategory.RESEARCH}
)

NO_MATCH_CONFIDENCE = 0.3


def estimate_tokens(message: str) -> int:
    """Approximate token count: four characters per token, rounded up."""
    return math.ceil(len(message) / 4)


def neutral_classification(message: str = "") -> TaskClassification:
    """Classification substituted when the classifier itself fails."""
    return TaskClassification(
        type=TaskCategory.GENERAL_CONVERSATION,
        confidence=NO_MATCH_CONFIDENCE,
        complexity=Complexity.LOW,
        requires_tools=False,
        estimated_tokens=estimate_tokens(message or ""),
    )


class TaskClassifier:
    """Keyword/regex task classifier.

    Stateless; a single instance can be shared by any number of concurrent
    request handlers.
    """

    def __init__(
        self,
        patterns: dict[TaskCategory, tuple[re.Pattern[str], ...]] | None = None,
        tool_patterns: tuple[re.Pattern[str], ...] | None = None,
    ) -> None:
        self._patterns = patterns if patterns is not None else TASK_PATTERNS
        self._tool_patterns = tool_patterns if tool_patterns is not None else TOOL_PATTERNS

    def classify(self, message: str) -> TaskClassification:
        """Classify a user message.

        Args:
            message: Raw user message (may be empty)

        Returns:
            TaskClassification for the message
        """
        scores = self.score(message)
        total = sum(scores.values())

        if total == 0:
            task_type = TaskCategory.GENERAL_CONVERSATION
            confidence = NO_MATCH_CONFIDENCE
        else:
            # Highest count first, then category value ascending
            task_type, top = min(scores.items(), key=lambda item: (-item[1], item[0].value))
            confidence = top / total

        result = TaskClassification(
            type=task_type,
            confidence=confidence,
            complexity=self.estimate_complexity(message, task_type),
            requires_tools=any(p.search(message) for p in self._tool_patterns),
            estimated_tokens=estimate_tokens(message),
        )

        log.debug(
            "task_classifier.classified",
            task_type=result.type.value,
            confidence=round(result.confidence, 3),
            complexity=result.complexity.value,
            requires_tools=result.requires_tools,
        )
        return result

    def score(self, message: str) -> dict[TaskCategory, int]:
        """Count matching patterns per category."""
        return {
            category: sum(1 for pattern in patterns if pattern.search(message))
            for category, patterns in self._patterns.items()
        }

    @staticmethod
    def estimate_complexity(message: str, task_type: TaskCategory) -> Complexity:
        length = len(message)

        if task_type in CODE_TASKS:
            # Even short code tasks are at least medium
            return Complexity.HIGH if length > 500 else Complexity.MEDIUM

        if task_type in OPEN_ENDED_TASKS:
            if length > 300:
                return Complexity.HIGH
            if length > 100:
                return Complexity.MEDIUM
            return Complexity.LOW

        if length > 400:
            return Complexity.HIGH
        if length > 150:
            return Complexity.MEDIUM
        return Complexity.LOW

    @staticmethod
    def describe(task_type: TaskCategory) -> str:
        """User-facing description of a task category."""
        return TASK_DESCRIPTIONS[task_type]
