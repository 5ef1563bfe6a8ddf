# Tests for the restricted code evaluator
"""
Tests for SandboxEvaluator: supported syntax, result wrapping and rejected code.
"""

import pytest

from lumina.sandbox import (
    SandboxError,
    SandboxEvaluator,
    SandboxLimitError,
    SandboxNameError,
    SandboxSecurityError,
)


@pytest.fixture
def evaluator():
    return SandboxEvaluator(max_steps=1000)


class TestEvaluation:
    """Test code that is allowed to run."""

    def test_return_sum_with_semicolon(self, evaluator):
        assert evaluator.evaluate('return a + b;', ['a', 'b'], [2, 3]) == {'result': 5}

    def test_dict_result_used_as_outputs(self, evaluator):
        code = "return {'sum': a + b, 'diff': a - b}"
        assert evaluator.evaluate(code, ['a', 'b'], [5, 3]) == {'sum': 8, 'diff': 2}

    def test_missing_values_default_to_zero(self, evaluator):
        assert evaluator.evaluate('return a + b', ['a', 'b'], [4]) == {'result': 4}
        assert evaluator.evaluate('return a', ['a'], [None]) == {'result': 0}

    def test_no_return_gives_none(self, evaluator):
        assert evaluator.evaluate('x = 1', [], []) == {'result': None}

    def test_statements(self, evaluator):
        code = (
            "total = 0\n"
            "for i in range(n):\n"
            "    if i % 2 == 0:\n"
            "        continue\n"
            "    total += i\n"
            "return total"
        )
        assert evaluator.evaluate(code, ['n'], [6]) == {'result': 1 + 3 + 5}

    def test_while_and_break(self, evaluator):
        code = "i = 0\nwhile True:\n    i += 1\n    if i >= 4:\n        break\nreturn i"
        assert evaluator.evaluate(code, [], []) == {'result': 4}

    def test_short_circuit_returns_operand(self, evaluator):
        assert evaluator.evaluate('return a or 7', ['a'], [0]) == {'result': 7}
        assert evaluator.evaluate('return a and b', ['a', 'b'], [2, 0]) == {'result': 0}

    def test_short_circuit_skips_evaluation(self, evaluator):
        """The right operand is not evaluated when the left decides."""
        assert evaluator.evaluate('return a or undefined_name', ['a'], [1]) == {'result': 1}

    def test_math_functions(self, evaluator):
        result = evaluator.evaluate('return round(sqrt(a) + floor(2.7) + pi, 2)', ['a'], [16])
        assert result == {'result': 9.14}

    def test_collections_and_methods(self, evaluator):
        code = "names = []\nfor item in items:\n    names.append(item.get('name', '').upper())\nreturn ', '.join(names)"
        items = [{'name': 'a'}, {'name': 'b'}]
        assert evaluator.evaluate(code, ['items'], [items]) == {'result': 'A, B'}

    def test_fstring(self, evaluator):
        assert evaluator.evaluate("return f'{a:.1f}px'", ['a'], [2]) == {'result': '2.0px'}

    def test_subscript_and_unpacking(self, evaluator):
        code = "x, y = pair\nd = {}\nd['s'] = x + y\nreturn d"
        assert evaluator.evaluate(code, ['pair'], [[1, 2]]) == {'s': 3}


class TestRejection:
    """Test code that must not run."""

    @pytest.mark.parametrize('code', [
        'import os',
        'def f():\n    return 1',
        'return open("x")',
        'return a.__class__',
        'return (lambda: 1)()',
        'class A:\n    pass',
        'return [x for x in range(3)]',
        'with a:\n    pass',
    ])
    def test_disallowed_code(self, evaluator, code):
        with pytest.raises(SandboxSecurityError):
            evaluator.evaluate(code, ['a'], [1])

    def test_undefined_name(self, evaluator):
        with pytest.raises(SandboxNameError):
            evaluator.evaluate('return b', ['a'], [1])

    def test_syntax_error(self, evaluator):
        with pytest.raises(SandboxError):
            evaluator.evaluate('return a +', ['a'], [1])

    def test_runtime_error_wrapped(self, evaluator):
        with pytest.raises(SandboxError, match='Evaluation failed'):
            evaluator.evaluate('return a / 0', ['a'], [1])

    def test_infinite_loop_stopped(self, evaluator):
        with pytest.raises(SandboxLimitError):
            evaluator.evaluate('while True:\n    pass', [], [])

    def test_huge_range_rejected(self, evaluator):
        with pytest.raises(SandboxLimitError):
            evaluator.evaluate('return len(range(100000000000000000000))', [], [])

    def test_builtin_iteration_counts_steps(self, evaluator):
        with pytest.raises(SandboxLimitError):
            evaluator.evaluate('return len(sorted(range(500000)))', [], [])

    def test_input_sequence_counts_steps(self):
        evaluator = SandboxEvaluator(max_steps=50)
        items = list(range(100))
        assert evaluator.evaluate('return sum(a)', ['a'], [items[:5]]) == {'result': 10}
        with pytest.raises(SandboxLimitError):
            evaluator.evaluate('return sum(a)', ['a'], [items])

    def test_huge_power_rejected(self, evaluator):
        with pytest.raises(SandboxLimitError):
            evaluator.evaluate('return 10 ** 100000', [], [])

    def test_invalid_input_label(self, evaluator):
        with pytest.raises(SandboxError):
            evaluator.evaluate('return 1', ['not valid'], [1])

    def test_method_on_foreign_object_rejected(self, evaluator):
        with pytest.raises(SandboxSecurityError):
            evaluator.evaluate('return a.get(1)', ['a'], [object()])
