"""
Quiz scoring: maps a total answer score onto a result pattern.

A quiz session is an explicit object owned by its caller; nothing here
holds ambient state.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Sequence

ORAL_AGE_SLUG = "oral-age"


@dataclass(frozen=True)
class ResultPattern:
    """A result screen covering the inclusive score range [min_score, max_score]."""
    category: str
    min_score: int
    max_score: int
    title: str = ""
    age_modifier: Optional[int] = None

    def contains(self, score: int) -> bool:
        return self.min_score <= score <= self.max_score


@dataclass(frozen=True)
class Answer:
    choice_index: int
    score: int


def select_result_pattern(score: int, patterns: Sequence[ResultPattern]) -> ResultPattern:
    """
    Pick the result pattern for ``score``.

    Patterns may overlap: the first one in defined order whose range
    contains the score wins. A score outside every range falls back to
    the last pattern.

    Raises:
        ValueError: If ``patterns`` is empty
    """
    if not patterns:
        raise ValueError("At least one result pattern is required")
    for pattern in patterns:
        if pattern.contains(score):
            return pattern
    return patterns[-1]


@dataclass
class QuizSession:
    """In-progress answers and the computed result for one respondent."""
    quiz_slug: str
    user_age: Optional[int] = None
    user_gender: Optional[str] = None
    current_step: int = 0
    answers: List[Optional[Answer]] = field(default_factory=list)
    total_score: Optional[int] = None
    result: Optional[ResultPattern] = None
    oral_age: Optional[int] = None

    def set_profile(self, age: Optional[int], gender: Optional[str]) -> None:
        self.user_age = age
        self.user_gender = gender

    def set_answer(self, step: int, choice_index: int, score: int) -> None:
        """Record (or replace) the answer for ``step``."""
        if step < 0:
            raise ValueError(f"step must be non-negative, got {step}")
        while len(self.answers) <= step:
            self.answers.append(None)
        self.answers[step] = Answer(choice_index, score)

    def next_step(self) -> None:
        self.current_step += 1

    def prev_step(self) -> None:
        self.current_step = max(0, self.current_step - 1)

    def calculate_result(self, patterns: Sequence[ResultPattern]) -> ResultPattern:
        """Total the answers, select the result, and derive the oral age if applicable."""
        self.total_score = sum(a.score for a in self.answers if a is not None)
        self.result = select_result_pattern(self.total_score, patterns)
        self.oral_age = None
        if (
            self.quiz_slug == ORAL_AGE_SLUG
            and self.user_age
            and self.result.age_modifier is not None
        ):
            self.oral_age = self.user_age + self.result.age_modifier
        return self.result

    def reset(self) -> None:
        self.user_age = None
        self.user_gender = None
        self.current_step = 0
        self.answers = []
        self.total_score = None
        self.result = None
        self.oral_age = None
