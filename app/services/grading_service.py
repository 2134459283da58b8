"""
Answer grading shared by the realtime autosave path and the REST attempt endpoints

Five answer types, all graded by exact match:
- text-answer: case-insensitive, whitespace-trimmed string comparison
- single-choice / image-selection: selected option id vs the correct option
- multiple-choice: selected id set vs the correct id set (order irrelevant)
- true-false: boolean, or the strings "true"/"false" in any case
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


TEXT_ANSWER = "text-answer"
SINGLE_CHOICE = "single-choice"
IMAGE_SELECTION = "image-selection"
MULTIPLE_CHOICE = "multiple-choice"
TRUE_FALSE = "true-false"

ANSWER_TYPES = (TEXT_ANSWER, SINGLE_CHOICE, IMAGE_SELECTION, MULTIPLE_CHOICE, TRUE_FALSE)


class AnswerKind(str, Enum):
    TEXT = "text"
    SINGLE_ID = "single_id"
    ID_SET = "id_set"
    BOOLEAN = "boolean"
    UNKNOWN = "unknown"


def _scalar_to_str(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class SubmittedAnswer:
    """
    A client-submitted answer normalised at the boundary

    The raw payload is duck-typed JSON; classification happens once here and
    each question type then asks for the shape it needs.
    """
    kind: AnswerKind
    value: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> "SubmittedAnswer":
        # bool before numbers: bool is an int subclass
        if isinstance(raw, bool):
            return cls(AnswerKind.BOOLEAN, raw)
        if isinstance(raw, str):
            return cls(AnswerKind.TEXT, raw)
        if isinstance(raw, (int, float)):
            return cls(AnswerKind.SINGLE_ID, _scalar_to_str(raw))
        if isinstance(raw, (list, tuple)):
            if all(isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in raw):
                return cls(AnswerKind.ID_SET, tuple(_scalar_to_str(item) for item in raw))
        return cls(AnswerKind.UNKNOWN, raw)

    def as_text(self) -> Optional[str]:
        """Only genuine strings take part in text comparison"""
        if self.kind is AnswerKind.TEXT:
            return self.value
        return None

    def as_option_id(self) -> Optional[str]:
        if self.kind in (AnswerKind.TEXT, AnswerKind.SINGLE_ID):
            return self.value
        if self.kind is AnswerKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is AnswerKind.ID_SET and len(self.value) == 1:
            return self.value[0]
        return None

    def as_id_list(self) -> Optional[List[str]]:
        """A scalar submission becomes a singleton list"""
        if self.kind is AnswerKind.ID_SET:
            return list(self.value)
        option_id = self.as_option_id()
        if option_id is None:
            return None
        return [option_id]

    def as_boolean(self) -> Optional[bool]:
        """None means indeterminate"""
        if self.kind is AnswerKind.BOOLEAN:
            return self.value
        if self.kind is AnswerKind.TEXT:
            lowered = self.value.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        return None


@dataclass(frozen=True)
class Evaluation:
    is_correct: bool
    points: float


def _correct_option_ids(question: Dict[str, Any]) -> List[str]:
    options = question.get("options") or []
    return [
        str(option.get("id"))
        for option in options
        if isinstance(option, dict) and option.get("is_correct")
    ]


def _question_points(question: Dict[str, Any]) -> float:
    points = question.get("points", 1)
    if isinstance(points, bool) or not isinstance(points, (int, float)):
        return 0
    return points


def _grade_text(question: Dict[str, Any], answer: SubmittedAnswer) -> bool:
    submitted = answer.as_text()
    expected = question.get("correct_answer")
    if submitted is None or not isinstance(expected, str):
        return False
    return submitted.strip().lower() == expected.strip().lower()


def _grade_single(question: Dict[str, Any], answer: SubmittedAnswer) -> bool:
    submitted = answer.as_option_id()
    if submitted is None:
        return False
    return submitted in _correct_option_ids(question)


def _grade_multiple(question: Dict[str, Any], answer: SubmittedAnswer) -> bool:
    selected = answer.as_id_list()
    if selected is None:
        return False
    correct = _correct_option_ids(question)
    return len(correct) == len(selected) and set(correct) <= set(selected)


def _grade_true_false(question: Dict[str, Any], answer: SubmittedAnswer) -> bool:
    submitted = answer.as_boolean()
    expected = question.get("correct_boolean")
    if submitted is None or not isinstance(expected, bool):
        return False
    return submitted is expected


_GRADERS = {
    TEXT_ANSWER: _grade_text,
    SINGLE_CHOICE: _grade_single,
    IMAGE_SELECTION: _grade_single,
    MULTIPLE_CHOICE: _grade_multiple,
    TRUE_FALSE: _grade_true_false,
}


def evaluate(question: Dict[str, Any], submitted: Any) -> Evaluation:
    """
    Grade one submitted answer against a question document

    Pure and deterministic. Never raises on bad data: unknown answer types,
    malformed questions and unexpected answer shapes all grade as incorrect
    with zero points.

    Args:
        question: Question document (see Quiz model)
        submitted: Raw answer value or an already normalised SubmittedAnswer

    Returns:
        Evaluation(is_correct, points)
    """
    if not isinstance(submitted, SubmittedAnswer):
        submitted = SubmittedAnswer.from_raw(submitted)

    if not isinstance(question, dict):
        return Evaluation(False, 0)

    grader = _GRADERS.get(question.get("answer_type"))
    if grader is None:
        logger.warning(f"Unknown answer type {question.get('answer_type')!r} on question {question.get('id')}")
        return Evaluation(False, 0)

    is_correct = grader(question, submitted)
    return Evaluation(is_correct, _question_points(question) if is_correct else 0)


def total_score(answers: Iterable[Dict[str, Any]]) -> float:
    """Full recomputation of an attempt score from its answer records"""
    return sum(record.get("points") or 0 for record in answers)


def grade_answer_records(
    questions: List[Dict[str, Any]],
    answers: List[Dict[str, Any]]
) -> Tuple[List[Dict[str, Any]], float]:
    """
    Re-grade stored answer records against the current quiz questions

    Records whose question no longer exists keep their answer but score zero.

    Returns:
        Tuple of (regraded records, total score)
    """
    by_id = {str(q.get("id")): q for q in questions if isinstance(q, dict)}
    regraded = []
    for record in answers:
        question = by_id.get(str(record.get("question_id")))
        if question is None:
            evaluation = Evaluation(False, 0)
        else:
            evaluation = evaluate(question, record.get("answer"))
        regraded.append({
            **record,
            "is_correct": evaluation.is_correct,
            "points": evaluation.points,
        })
    return regraded, total_score(regraded)
