"""
Tests for ${...} template substitution.
Covers lookups, built-in functions, captures and the fixed-point loop.
"""

import logging
import random
import string
from datetime import datetime

import pytest

from aiflow.exceptions import InvalidDateExpression, SelfReferentialTemplate
from aiflow.variables.dates import add_months, resolve_moment
from aiflow.variables.substitution import TemplateResolver, autocamel


NOW = datetime(2024, 1, 31, 10, 30, 0)


class TestLookups:
    """Plain ${name} substitution."""

    def setup_method(self):
        self.resolver = TemplateResolver(clock=lambda: NOW)

    def test_simple_lookup(self):
        assert self.resolver.resolve("Hello ${who}!", {'who': 'world'}) == "Hello world!"

    def test_values_are_resolved_until_fixed_point(self):
        scope = {'a': 'A(${b})', 'b': 'B(${c})', 'c': 'C'}
        assert self.resolver.resolve("${a}", scope) == "A(B(C))"

    def test_unresolved_passthrough_emits_one_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger='aiflow.variables.substitution'):
            result = self.resolver.resolve("${missing}", {})

        assert result == "${missing}"
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "missing" in warnings[0].getMessage()
        assert self.resolver.undefined_vars == {'missing'}

    def test_missing_variable_warned_once_across_passes(self, caplog):
        scope = {'a': '${missing} and ${missing}'}
        with caplog.at_level(logging.WARNING, logger='aiflow.variables.substitution'):
            result = self.resolver.resolve("${a} ${missing}", scope)

        assert result == "${missing} and ${missing} ${missing}"
        assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 1

    @pytest.mark.parametrize("text", [
        "plain text",
        "${x} and ${y}",
        "${missing} stays",
        "${@autocamel|x}",
        "${@date|%Y|+1 year}",
        "{not a template} $x ${",
    ])
    def test_idempotence(self, text):
        scope = {'x': 'value ${y}', 'y': 'why'}
        once = self.resolver.resolve(text, scope)
        assert self.resolver.resolve(once, scope) == once

    def test_self_lookup_terminates(self):
        assert self.resolver.resolve("${a}", {'a': '${a}'}) == "${a}"

    def test_growing_self_reference_raises(self):
        with pytest.raises(SelfReferentialTemplate):
            self.resolver.resolve("${a}", {'a': 'x${a}'})

    def test_mutual_reference_raises(self):
        resolver = TemplateResolver(max_passes=10)
        with pytest.raises(SelfReferentialTemplate):
            resolver.resolve("${a}", {'a': '${b}', 'b': '${a}'})

    def test_unbalanced_braces_left_alone(self):
        assert self.resolver.resolve("cost: ${price", {'price': '5'}) == "cost: ${price"

    def test_nested_expression_resolved_inside_out(self):
        scope = {'which': 'color', 'color': 'red'}
        assert self.resolver.resolve("${${which}}", scope) == "red"

    def test_none_passes_through(self):
        assert self.resolver.resolve(None, {}) is None

    def test_resolve_values(self):
        scope = {'a': '1', 'b': '${a}2'}
        assert self.resolver.resolve_values(scope, scope) == {'a': '1', 'b': '12'}


class TestBuiltins:
    """@rand, @date, @autocamel, @tee and captures."""

    def setup_method(self):
        self.resolver = TemplateResolver(rng=random.Random(42), clock=lambda: NOW)

    def test_rand_default_length_and_charset(self):
        value = self.resolver.resolve("${@rand}", {})
        assert len(value) == 8
        assert set(value) <= set(string.ascii_letters + string.digits)

    def test_rand_length_and_charset(self):
        value = self.resolver.resolve("${@rand|20|ab}", {})
        assert len(value) == 20
        assert set(value) <= {'a', 'b'}

    def test_rand_charset_may_contain_pipes(self):
        value = self.resolver.resolve("${@rand|30|a|b}", {})
        assert set(value) <= {'a', '|', 'b'}

    def test_rand_non_numeric_length_is_empty(self, caplog):
        with caplog.at_level(logging.WARNING, logger='aiflow.variables.substitution'):
            assert self.resolver.resolve("[${@rand|${n}}]", {}) == "[]"
        assert "'n'" in caplog.records[0].getMessage()
        assert self.resolver.resolve("${@rand|abc}", {}) == ""

    def test_rand_length_leading_digits(self):
        assert len(self.resolver.resolve("${@rand|5x}", {})) == 5
        assert self.resolver.resolve("${@rand|-3}", {}) == ""

    def test_date_default_format(self):
        assert self.resolver.resolve("${@date}", {}) == "2024-01-31 10:30:00"

    def test_date_with_format_and_relative_expression(self):
        assert self.resolver.resolve("${@date|%Y-%m-%d}", {}) == "2024-01-31"
        assert self.resolver.resolve("${@date|%Y-%m-%d|+1 month}", {}) == "2024-02-29"
        assert self.resolver.resolve("${@date|%Y-%m-%d %H:%M|tomorrow}", {}) == "2024-02-01 00:00"
        assert self.resolver.resolve("${@date|%d|3 days ago}", {}) == "28"

    def test_invalid_date_expression_is_fatal(self):
        with pytest.raises(InvalidDateExpression):
            self.resolver.resolve("${@date|%Y|next blue moon}", {})

    def test_autocamel(self):
        scope = {'lower': 'hello big-world_now', 'mixed': 'Hello world'}
        assert self.resolver.resolve("${@autocamel|lower}", scope) == "HelloBigWorldNow"
        assert self.resolver.resolve("${@autocamel|mixed}", scope) == "Hello world"

    def test_tee_binds_and_prints(self):
        result = self.resolver.resolve("${@tee|greeting|hi|there} / ${greeting}", {})
        assert result == "hi|there / hi|there"

    def test_capture_suffix(self):
        result = self.resolver.resolve("${@rand|6}${>code}-${code}", {})
        first, second = result.split('-')
        assert first == second
        assert len(first) == 6

    def test_captures_do_not_leak_into_scope(self):
        scope = {'x': '1'}
        self.resolver.resolve("${x}${>y} ${@tee|z|2}", scope)
        assert scope == {'x': '1'}


class TestRelativeDates:
    """Relative date expression parsing."""

    @pytest.mark.parametrize("expression,expected", [
        ("now", NOW),
        ("", NOW),
        ("today", datetime(2024, 1, 31)),
        ("yesterday", datetime(2024, 1, 30)),
        ("noon", datetime(2024, 1, 31, 12)),
        ("+1 day", datetime(2024, 2, 1, 10, 30)),
        ("-2 hours", datetime(2024, 1, 31, 8, 30)),
        ("+1 week 2 days", datetime(2024, 2, 9, 10, 30)),
        ("1 year ago", datetime(2023, 1, 31, 10, 30)),
        ("tomorrow +2 hours", datetime(2024, 2, 1, 2, 0)),
        ("2023-05-06", datetime(2023, 5, 6)),
    ])
    def test_expressions(self, expression, expected):
        assert resolve_moment(expression, NOW) == expected

    def test_unix_timestamp(self):
        assert resolve_moment("@0", NOW) == datetime.fromtimestamp(0)

    @pytest.mark.parametrize("expression", ["soon", "+1 fortnights later", "@abc"])
    def test_invalid(self, expression):
        with pytest.raises(InvalidDateExpression):
            resolve_moment(expression, NOW)

    def test_add_months_clamps_day(self):
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)
        assert add_months(datetime(2023, 3, 15), -3) == datetime(2022, 12, 15)


def test_autocamel_helper():
    assert autocamel("my var") == "MyVar"
    assert autocamel("") == ""
