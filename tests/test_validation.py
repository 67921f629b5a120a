"""Answer validation tests — required, type formats, option membership and rules."""

import logging

import pytest

from offer_funnel.errors import StepValidationError
from offer_funnel.models.step import Step
from offer_funnel.validation import is_blank, validate_answer


def _step(type_="text_input", validation=None, **kwargs):
    return Step(id="q", order=0, type=type_, validation=validation or {}, **kwargs)


CHOICES = [{"value": "a", "label": "A"}, {"value": "b", "label": "B"}]


def _assert_invalid(step, answer, match=None):
    with pytest.raises(StepValidationError) as exc_info:
        validate_answer(step, answer)
    assert exc_info.value.field == step.id
    if match:
        assert match in exc_info.value.message, exc_info.value.message
    return exc_info.value


class TestIsBlank:

    @pytest.mark.parametrize("answer", [None, "", "   ", [], {}])
    def test_blank(self, answer):
        assert is_blank(answer) is True

    @pytest.mark.parametrize("answer", ["x", 0, False, ["a"]])
    def test_not_blank(self, answer):
        assert is_blank(answer) is False


class TestRequired:

    @pytest.mark.parametrize("answer", [None, "", "  ", []])
    def test_required_missing(self, answer):
        _assert_invalid(_step(validation={"required": True}), answer, "required")

    def test_optional_missing_skips_other_checks(self):
        validate_answer(_step("email", {"min_length": 50}), "")

    def test_custom_message_replaces_generated(self):
        step = _step(validation={"required": True, "custom_message": "Tell us!"})
        err = _assert_invalid(step, None)
        assert err.message == "Tell us!"
        assert str(err) == "q: Tell us!"

    def test_validation_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_answer(_step(validation={"required": True}), None)


class TestTypes:

    @pytest.mark.parametrize("answer", ["a@b.co", " a.b@c.org "])
    def test_email_valid(self, answer):
        validate_answer(_step("email"), answer)

    @pytest.mark.parametrize("answer", ["nope", "a@b", "a b@c.com", 42])
    def test_email_invalid(self, answer):
        _assert_invalid(_step("email"), answer, "email")

    @pytest.mark.parametrize("answer", ["(555) 123-4567", "555.123.4567", 5551234567])
    def test_phone_valid(self, answer):
        validate_answer(_step("phone"), answer)

    @pytest.mark.parametrize("answer", ["555-1234", "1 555 123 45678"])
    def test_phone_invalid(self, answer):
        _assert_invalid(_step("phone"), answer, "10-digit")

    @pytest.mark.parametrize("answer", [3, 2.5, "42", "-1"])
    def test_number_valid(self, answer):
        validate_answer(_step("number"), answer)

    @pytest.mark.parametrize("answer", ["abc", True, [1]])
    def test_number_invalid(self, answer):
        _assert_invalid(_step("number"), answer, "number")

    def test_date(self):
        validate_answer(_step("date"), "2024-02-29")
        _assert_invalid(_step("date"), "29/02/2024", "YYYY-MM-DD")

    def test_single_choice_membership(self):
        step = _step("single_choice", options=CHOICES)
        validate_answer(step, "a")
        _assert_invalid(step, "c", "Unknown option")
        _assert_invalid(step, ["a"], "Unknown option")

    def test_multi_choice_membership(self):
        step = _step("multi_choice", options=CHOICES)
        validate_answer(step, ["a", "b"])
        _assert_invalid(step, ["a", "z"], "Unknown option")
        _assert_invalid(step, "a", "select")

    def test_text_accepts_anything(self):
        validate_answer(_step("text_input"), "whatever")
        validate_answer(_step("zip_code"), "90210")


class TestRules:

    def test_pattern(self):
        step = _step("zip_code", {"pattern": r"^\d{5}$"})
        validate_answer(step, "90210")
        _assert_invalid(step, "9021", "format")

    def test_invalid_pattern_is_skipped(self, caplog):
        """A pattern that does not compile must not block the visitor."""
        step = _step("zip_code", {"pattern": "([0-9"})
        with caplog.at_level(logging.WARNING, logger="offer_funnel.validation"):
            validate_answer(step, "12345")
        assert "invalid pattern" in caplog.text

    def test_invalid_pattern_still_checks_other_rules(self):
        step = _step("zip_code", {"pattern": "([0-9", "max_length": 5})
        _assert_invalid(step, "123456", "5 characters")

    def test_min_max(self):
        step = _step("number", {"min": 18, "max": 99})
        validate_answer(step, 18)
        validate_answer(step, "99")
        _assert_invalid(step, 17, "at least 18")
        _assert_invalid(step, 100, "at most 99")

    def test_min_max_fractional_bounds(self):
        _assert_invalid(_step("number", {"min": 0.5}), 0.25, "at least 0.5")

    def test_length_counts_characters(self):
        step = _step(validation={"min_length": 2, "max_length": 4})
        validate_answer(step, "abc")
        _assert_invalid(step, "a", "2 characters")
        _assert_invalid(step, "abcde", "4 characters")

    def test_length_counts_selections(self):
        step = _step("multi_choice", {"max_length": 1}, options=CHOICES)
        _assert_invalid(step, ["a", "b"], "1 selections")
