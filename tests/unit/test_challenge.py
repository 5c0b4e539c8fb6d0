"""Unit tests for math challenge generation (shame_game/gamification/challenge.py)"""
import random
import pytest

from shame_game.gamification.challenge import check_answer, generate_math_problem, make_problem
from shame_game.models import MathOperation


def test_make_problem_addition():
    """Test addition keeps operand order"""
    problem = make_problem(40, 35, MathOperation.ADDITION)

    assert problem.operand1 == 40
    assert problem.operand2 == 35
    assert problem.correct_answer == 75
    assert problem.question_text == "40 + 35 = ?"


def test_make_problem_subtraction_orders_larger_first():
    """Test subtraction never produces a negative answer"""
    problem = make_problem(30, 70, MathOperation.SUBTRACTION)

    assert problem.operand1 == 70
    assert problem.operand2 == 30
    assert problem.correct_answer == 40
    assert problem.question_text == "70 - 30 = ?"


def test_make_problem_subtraction_equal_operands():
    """Test equal operands subtract to zero"""
    problem = make_problem(50, 50, MathOperation.SUBTRACTION)
    assert problem.correct_answer == 0


def test_generate_math_problem_within_bounds():
    """Test operands stay inside the configured range"""
    rng = random.Random(7)
    for _ in range(200):
        problem = generate_math_problem(25, 95, rng)
        assert 25 <= problem.operand1 <= 95
        assert 25 <= problem.operand2 <= 95
        assert problem.correct_answer >= 0
        if problem.operation == MathOperation.SUBTRACTION:
            assert problem.operand1 >= problem.operand2
            assert problem.correct_answer == problem.operand1 - problem.operand2
        else:
            assert problem.correct_answer == problem.operand1 + problem.operand2


def test_generate_math_problem_uses_both_operations():
    """Test both operations come up over many draws"""
    rng = random.Random(1)
    operations = {generate_math_problem(25, 95, rng).operation for _ in range(100)}
    assert operations == {MathOperation.ADDITION, MathOperation.SUBTRACTION}


def test_generate_math_problem_is_reproducible_with_seed():
    """Test seeded generators produce identical problems"""
    first = generate_math_problem(25, 95, random.Random(99))
    second = generate_math_problem(25, 95, random.Random(99))
    assert first == second


def test_generate_math_problem_single_value_range():
    """Test a degenerate range still works"""
    problem = generate_math_problem(10, 10, random.Random(3))
    assert problem.operand1 == 10
    assert problem.operand2 == 10


def test_generate_math_problem_rejects_inverted_range():
    """Test min above max is rejected"""
    with pytest.raises(ValueError):
        generate_math_problem(95, 25)


def test_check_answer():
    """Test only the exact answer is accepted"""
    problem = make_problem(25, 30, MathOperation.ADDITION)
    assert check_answer(problem, 55) is True
    assert check_answer(problem, 54) is False
    assert check_answer(problem, -55) is False
