"""
Math solving: prompt the model for a JSON worked solution and normalize it.

Why:
    Model output is not trusted to match the requested shape. Parsing strips
    Markdown code fences; normalization fills every missing or blank field
    with a friendly default so the learner page can always render a full
    solution (at least one step, at least one practice problem).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from backend.tutoring.client import TextGenerationClient
from backend.tutoring.prompts import solve_math_prompt


logger = logging.getLogger("moe.tutoring")

DIFFICULTIES = ("easy", "medium", "hard")


@dataclass
class SolutionStep:
    title: str
    explanation: str
    visual: str
    tip: str


@dataclass
class PracticeProblem:
    question: str
    answer: str
    hint: str


@dataclass
class MathSolution:
    question: str
    topic: str
    difficulty: str
    answer: str
    steps: List[SolutionStep] = field(default_factory=list)
    realWorldExample: str = ""
    practiceProblems: List[PracticeProblem] = field(default_factory=list)
    encouragement: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _strip_fences(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned[:7].lower() == "```json":
        cleaned = cleaned[7:].lstrip()
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def safe_json_parse(raw: object) -> Optional[Dict[str, Any]]:
    """Parse model output into a dict; `None` for anything unusable."""
    if not isinstance(raw, str):
        return None
    try:
        parsed = json.loads(_strip_fences(raw))
    except ValueError:
        logger.warning("tutoring.solve_math.unparsable_json length=%s", len(raw))
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def _text(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _answer(value: object) -> str:
    """Render a JSON answer the way a browser would stringify it.

    Booleans are lowercase, lists join their items with commas (nested lists
    flatten, nulls become empty), objects collapse to `[object Object]`.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_answer(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def map_difficulty(value: object) -> str:
    normal = value.strip().lower() if isinstance(value, str) else ""
    return normal if normal in DIFFICULTIES else "medium"


def fallback_steps(question: str) -> List[Dict[str, str]]:
    question = question or "this math problem"
    return [
        {
            "title": "Understand the problem",
            "explanation": f"Read the problem carefully: {question}. What are we trying to find?",
            "visual": question,
            "tip": "Underline the important numbers and words.",
        },
        {
            "title": "Choose a strategy",
            "explanation": "Think about what math operation we should use and why.",
            "visual": "Strategy -> Steps -> Answer",
            "tip": "Remember similar problems you've solved before.",
        },
        {
            "title": "Work it out",
            "explanation": "Solve the problem step-by-step. Write down your work clearly.",
            "visual": "Step 1\nStep 2\nStep 3",
            "tip": "Double-check each step before moving on.",
        },
        {
            "title": "Check your answer",
            "explanation": "Does your answer make sense? Try the reverse operation to be sure.",
            "visual": "Check -> Reason -> Share",
            "tip": "If it doesn't make sense, retrace your steps calmly.",
        },
    ]


def fallback_practice_problems(topic: str) -> List[Dict[str, str]]:
    return [
        {
            "question": f"Create a new {topic or 'math'} question similar to the original one and solve it yourself.",
            "answer": "",
            "hint": "Follow the main steps Moe showed you.",
        }
    ]


def _dict_items(value: object) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, dict) else {} for item in value]


def normalize_tutor_response(response: Dict[str, Any]) -> MathSolution:
    raw_question = response.get("question")
    raw_topic = response.get("topic")
    steps = _dict_items(response.get("steps")) or fallback_steps(
        raw_question if isinstance(raw_question, str) else ""
    )
    practice = _dict_items(response.get("practiceProblems")) or fallback_practice_problems(
        raw_topic if isinstance(raw_topic, str) else ""
    )
    return MathSolution(
        question=_text(raw_question, "Let's solve this problem together!"),
        topic=_text(raw_topic, "General Math"),
        difficulty=map_difficulty(response.get("difficulty")),
        answer=_answer(response.get("answer")),
        steps=[
            SolutionStep(
                title=_text(step.get("title"), f"Step {index + 1}"),
                explanation=_text(step.get("explanation"), "Let's think through this part carefully."),
                visual=_text(step.get("visual"), ""),
                tip=_text(step.get("tip"), "Keep going, you are doing great!"),
            )
            for index, step in enumerate(steps)
        ],
        realWorldExample=_text(
            response.get("realWorldExample"),
            "Imagine using this math idea while shopping at the market in Freetown.",
        ),
        practiceProblems=[
            PracticeProblem(
                question=_text(problem.get("question"), "Try a similar problem."),
                answer=_answer(problem.get("answer")),
                hint=_text(problem.get("hint"), "Use the same steps we just practiced!"),
            )
            for problem in practice
        ],
        encouragement=_text(
            response.get("encouragement"),
            "Awesome effort! Keep practicing and you will master this in no time.",
        ),
    )


class SolveMathUseCase:
    """Ask the model for a worked solution; `None` means unparsable output.

    Raises `ValueError("invalid_problem")` for blank input; client errors
    propagate to the web adapter.
    """

    def __init__(self, client: TextGenerationClient) -> None:
        self._client = client

    async def execute(self, problem: object) -> Optional[MathSolution]:
        if not isinstance(problem, str) or not problem.strip():
            raise ValueError("invalid_problem")
        text = await self._client.generate(solve_math_prompt(problem.strip()), max_tokens=900)
        parsed = safe_json_parse(text)
        if parsed is None:
            return None
        return normalize_tutor_response(parsed)


__all__ = [
    "MathSolution",
    "PracticeProblem",
    "SolutionStep",
    "SolveMathUseCase",
    "map_difficulty",
    "normalize_tutor_response",
    "safe_json_parse",
]
