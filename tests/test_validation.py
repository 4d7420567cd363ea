"""Tests for the validation result model."""

import pytest
from pydantic import ValidationError

from aeroml_wizard.eligibility import EligibilityTier
from aeroml_wizard.wizard.models import ValidationResult, merge_exclusions


def test_exclusions_are_union_of_both_lists():
    merged = merge_exclusions([{"column_name": "A"}, {"column_name": "B"}], ["B", "C"])
    assert set(merged) == {"A", "B", "C"}
    assert merged == ["A", "B", "C"]


def test_merge_skips_blank_and_malformed_entries():
    assert merge_exclusions([{"column_name": ""}, {"reason": "x"}, "D"], [None, " E "]) == ["D", "E"]


def test_from_envelope():
    result = ValidationResult.from_response(
        {
            "success": True,
            "validation": {
                "confidence_score": 72.5,
                "suggested_target_column": "churned",
                "potential_issues": ["Class imbalance"],
                "leaky_columns": [{"column_name": "cancel_date", "reason": "future info"}],
                "columns_to_exclude": ["customer_id"],
                "safe_columns": ["tenure", "plan"],
                "validation_message": "Looks usable",
            },
        }
    )

    assert result.confidence_score == 72.5
    assert result.tier == EligibilityTier.CONDITIONALLY_ELIGIBLE
    assert result.suggested_target_column == "churned"
    assert result.issues == ("Class imbalance",)
    assert result.excluded_columns == ("cancel_date", "customer_id")
    assert result.message == "Looks usable"


def test_from_inner_object_with_defaults():
    result = ValidationResult.from_response({"confidence_score": 90})
    assert result.tier == EligibilityTier.ELIGIBLE
    assert result.excluded_columns == ()


def test_score_out_of_range_rejected():
    with pytest.raises(ValidationError):
        ValidationResult.from_response({"confidence_score": 140})


def test_result_is_read_only():
    result = ValidationResult(confidence_score=90)
    with pytest.raises(ValidationError):
        result.confidence_score = 10
