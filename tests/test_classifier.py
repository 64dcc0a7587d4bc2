"""
Unit tests for pallet type classification.
"""

import pytest

from pallet_ledger.core.classifier import (
    DEFAULT_RULES,
    BillingBucket,
    ClassificationRules,
    Geometry,
    UnitClass,
    classify,
    normalize_label,
)


class TestGeometry:
    """Test geometry detection from the pallet type label."""

    def test_label_variants_are_geometry_a(self):
        for label in ("100x120", "100X120", " 100 x 120 ", "100×120"):
            assert classify(label, None).geometry is Geometry.A

    def test_other_labels_are_geometry_b(self):
        for label in ("80x120", "120x120", "EPAL", "", None):
            assert classify(label, None).geometry is Geometry.B

    def test_normalize_label(self):
        assert normalize_label(" 100 x\t120 ") == "100X120"
        assert normalize_label(None) == ""


class TestFrozenFlag:
    """Test frozen detection from the note."""

    def test_marker_in_note_is_frozen(self):
        assert classify("80x120", "merce CONGELATO lotto 4").frozen

    def test_marker_is_case_insensitive(self):
        assert classify("80x120", "congelato").frozen
        assert classify("80x120", "Frozen goods").frozen

    def test_no_marker_is_normal(self):
        assert not classify("80x120", "fragile").frozen
        assert not classify("80x120", None).frozen

    def test_frozen_does_not_change_geometry(self):
        unit_class = classify("100x120", "CONGELATO")
        assert unit_class.geometry is Geometry.A
        assert unit_class.frozen


class TestBillingBucket:
    """Test the exclusive billing buckets."""

    def test_each_class_has_one_bucket(self):
        assert UnitClass(Geometry.A, False).bucket is BillingBucket.NORMAL_A
        assert UnitClass(Geometry.B, False).bucket is BillingBucket.NORMAL_B
        assert UnitClass(Geometry.A, True).bucket is BillingBucket.FROZEN_A
        assert UnitClass(Geometry.B, True).bucket is BillingBucket.FROZEN_B


class TestClassificationRules:
    """Test configurable classification tokens."""

    def test_default_rules_are_normalised(self):
        assert DEFAULT_RULES.geometry_a_tokens == ("100X120",)
        assert DEFAULT_RULES.frozen_markers == ("CONGELATO", "FROZEN")
        assert ClassificationRules() == DEFAULT_RULES

    def test_custom_tokens(self):
        rules = ClassificationRules(geometry_a_tokens=("120 x 100",), frozen_markers=("surgelato",))
        assert classify("120x100", None, rules).geometry is Geometry.A
        assert classify("100x120", None, rules).geometry is Geometry.B
        assert classify("80x120", "SURGELATO", rules).frozen

    def test_empty_tokens_raise(self):
        with pytest.raises(ValueError, match="geometry_a_tokens"):
            ClassificationRules(geometry_a_tokens=())

    def test_blank_marker_raises(self):
        with pytest.raises(ValueError, match="blank"):
            ClassificationRules(frozen_markers=("  ",))
