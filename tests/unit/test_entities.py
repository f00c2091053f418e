"""
Unit Tests - Entity Normalizer
"""
import pytest

from budget_reports.reporting.entities import canonical_category, decode_entities


class TestDecodeEntities:
    """Tests for decode_entities"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Gloves &amp; Masks", "Gloves & Masks"),
            ("Gloves \\u0026 Masks", "Gloves & Masks"),
            ("Patient&#39;s Kit", "Patient's Kit"),
            ("&lt;Sterile&gt;", "<Sterile>"),
            ("&quot;Premium&quot;", '"Premium"'),
            ("Caf\\u00e9 Supplies", "Café Supplies"),
        ],
    )
    def test_decodes_escapes(self, raw, expected):
        """Test unicode escapes and HTML entities are decoded"""
        assert decode_entities(raw) == expected

    def test_plain_ascii_unchanged(self):
        """Test plain text passes through"""
        assert decode_entities("Wound Care") == "Wound Care"

    def test_idempotent_on_double_encoding(self):
        """Test decoding a decoded value changes nothing"""
        raw = "Gloves &amp;amp; Masks"
        once = decode_entities(raw)
        assert once == "Gloves & Masks"
        assert decode_entities(once) == once

    def test_deeply_nested_encoding(self):
        """Test many layers of re-escaped ampersands decode fully in one call"""
        raw = "A &" + "amp;" * 20 + "lt; B"
        once = decode_entities(raw)
        assert once == "A < B"
        assert decode_entities(once) == once

    def test_mixed_nested_escapes(self):
        raw = "Wound \\u0026" + "amp;" * 18 + "amp; Ostomy"
        assert decode_entities(raw) == "Wound & Ostomy"

    def test_empty_values(self):
        """Test None and empty strings are returned as-is"""
        assert decode_entities(None) is None
        assert decode_entities("") == ""


class TestCanonicalCategory:
    """Tests for canonical_category"""

    def test_encoded_forms_share_a_key(self):
        """Test raw and decoded names map to the same key"""
        assert canonical_category("Gloves &amp; Masks") == canonical_category("Gloves \\u0026 Masks")

    def test_missing_category_uses_default(self):
        """Test blank names fall back to the default label"""
        assert canonical_category(None) == "Uncategorized"
        assert canonical_category("   ", default="Other") == "Other"

    def test_surrounding_whitespace_stripped(self):
        assert canonical_category(" Linens ") == "Linens"
