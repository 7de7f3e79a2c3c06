"""
LLM-as-judge scoring.

The judge never owns a model client: it receives a `generate_fn` that maps
chat messages to the model's reply text. `openai_generate_fn` builds such a
callable from an OpenAI client for callers that want one.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern

from openai import OpenAI

logger = logging.getLogger(__name__)

Message = Dict[str, str]
GenerateFn = Callable[[List[Message]], str]

DEFAULT_TEMPLATE = """You are assessing a submitted answer on a given task based on a criterion. Here is the data:

[BEGIN DATA]
***
[Task]: {question}
***
[Submission]: {answer}
***
[Criterion]: {criterion}
***
[END DATA]

Does the submission meet the criterion?

{instructions}
"""

DEFAULT_GRADE_PATTERN = re.compile(r"GRADE\s*:\s*([CPI])", re.IGNORECASE | re.MULTILINE)


def default_instructions(partial_credit: bool) -> str:
    """Grading instructions asking for a final 'GRADE: <letter>' line."""
    letters = "CPI" if partial_credit else "CI"
    partial = '"P" for partially correct answers, ' if partial_credit else ""
    return (
        f"After assessing the submitted answer, reply with 'GRADE: $LETTER' (without quotes) "
        f"where LETTER is one of {letters}. Please choose ONE option for the grade: either "
        f'"C" for correct answers, {partial}or "I" for incorrect answers.\n\n'
        "First, write out in a step by step manner your reasoning about the criterion to be "
        "sure that your conclusion is correct. Avoid simply stating the correct answers at the "
        f"outset. Then, end with your answer formatted as 'GRADE: $LETTER' where LETTER is one "
        f"of {letters}."
    )


@dataclass(frozen=True)
class JudgeScore:
    """Grade assigned by the judge model."""
    value: float
    grade: str
    explanation: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMJudge:
    """Grades an answer against a criterion using an injected generator."""

    def __init__(
        self,
        generate_fn: GenerateFn,
        template: str = DEFAULT_TEMPLATE,
        partial_credit: bool = False,
        instructions: Optional[str] = None,
        grade_pattern: Pattern = DEFAULT_GRADE_PATTERN
    ):
        self.generate_fn = generate_fn
        self.template = template
        self.partial_credit = partial_credit
        self.instructions = instructions or default_instructions(partial_credit)
        self.grade_pattern = grade_pattern

    def build_prompt(self, question: Any, answer: Any, criterion: Any) -> str:
        return (
            self.template
            .replace("{question}", str(question))
            .replace("{criterion}", str(criterion))
            .replace("{answer}", "" if answer is None else str(answer))
            .replace("{instructions}", self.instructions)
        )

    def parse_grade(self, text: Optional[str]) -> JudgeScore:
        """Map the last 'GRADE: X' in the reply to a score."""
        content = text or ""
        matches = self.grade_pattern.findall(content)
        if not matches:
            logger.warning("Judge reply contained no grade, scoring as incorrect")
            return JudgeScore(value=0.0, grade="incorrect", explanation=content)

        letter = matches[-1].upper()
        if letter == "C":
            return JudgeScore(value=1.0, grade="correct", explanation=content)
        if letter == "P" and self.partial_credit:
            return JudgeScore(value=0.5, grade="partial", explanation=content)
        return JudgeScore(value=0.0, grade="incorrect", explanation=content)

    def score(self, question: Any, answer: Any, criterion: Any) -> JudgeScore:
        """Ask the judge model to grade one answer."""
        prompt = self.build_prompt(question, answer, criterion)
        reply = self.generate_fn([{"role": "user", "content": prompt}])
        return self.parse_grade(reply)


def openai_generate_fn(
    client: OpenAI,
    model: str,
    temperature: float = 0.0,
    system_prompt: str = "You are an impartial grader of model answers."
) -> GenerateFn:
    """Adapt an OpenAI client into a generate_fn for LLMJudge."""

    def generate(messages: List[Message]) -> str:
        try:
            response = client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=temperature,
            )
            return response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"Judge generation failed: {e}")
            raise

    return generate
