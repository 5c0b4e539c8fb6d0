"""
Math challenge generation

A wake-up only counts once the user proves they are awake by solving a
two-operand addition or subtraction problem.
"""

import logging
import random
from typing import Optional

from shame_game.models import MathOperation, MathProblem

logger = logging.getLogger(__name__)


def make_problem(operand1: int, operand2: int, operation: MathOperation) -> MathProblem:
    """
    Build a problem with its precomputed answer

    Subtraction operands are reordered larger-first so the answer is never negative:
        make_problem(30, 70, MathOperation.SUBTRACTION)  ->  70 - 30 = ?  (40)
    """
    if operation == MathOperation.SUBTRACTION:
        larger, smaller = max(operand1, operand2), min(operand1, operand2)
        return MathProblem(
            operand1=larger,
            operand2=smaller,
            operation=operation,
            correct_answer=larger - smaller,
        )

    return MathProblem(
        operand1=operand1,
        operand2=operand2,
        operation=operation,
        correct_answer=operand1 + operand2,
    )


def generate_math_problem(
    min_operand: int,
    max_operand: int,
    rng: Optional[random.Random] = None
) -> MathProblem:
    """
    Generate a random challenge

    Args:
        min_operand: Smallest operand (inclusive)
        max_operand: Largest operand (inclusive)
        rng: Random source (tests pass a seeded instance)

    Returns:
        MathProblem with addition or subtraction chosen uniformly
    """
    if min_operand > max_operand:
        raise ValueError(f"min_operand ({min_operand}) must not exceed max_operand ({max_operand})")

    rng = rng or random.Random()
    operation = rng.choice(list(MathOperation))
    operand1 = rng.randint(min_operand, max_operand)
    operand2 = rng.randint(min_operand, max_operand)

    problem = make_problem(operand1, operand2, operation)
    logger.debug(f"Generated challenge: {problem.question_text}")
    return problem


def check_answer(problem: MathProblem, value: int) -> bool:
    """True when value is the problem's answer"""
    return value == problem.correct_answer
