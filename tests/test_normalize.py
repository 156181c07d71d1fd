"""
Tests for name normalization and spreadsheet value parsing.
"""

import pytest
from datetime import date, datetime

from recaptacion.normalize import (
    normalize_name,
    tokenize,
    normalize_header,
    parse_bool,
    parse_date,
    format_fecha_origen,
)


class TestNormalizeName:
    """Test canonical name form."""

    def test_strips_accents_and_case(self):
        """Accented, mixed-case names fold to plain lowercase."""
        assert normalize_name("María López") == "maria lopez"
        assert normalize_name("JOSÉ ÑANDÚ") == "jose nandu"

    def test_punctuation_becomes_single_space(self):
        """Non-alphanumeric runs collapse to one space and are trimmed."""
        assert normalize_name("  María-José   O'Connor. ") == "maria jose o connor"

    def test_empty_inputs(self):
        """None and empty strings normalize to empty string."""
        assert normalize_name(None) == ""
        assert normalize_name("") == ""
        assert normalize_name("   ") == ""
        assert normalize_name("!!!") == ""

    @pytest.mark.parametrize("raw", [
        "Juan Pérez",
        "  MARÍA   lópez ",
        "Ana-Lía (Ventas) #2",
        "",
        "Ñoño_Çelik",
    ])
    def test_idempotent(self, raw):
        """Normalizing twice changes nothing."""
        once = normalize_name(raw)
        assert normalize_name(once) == once


class TestTokenize:
    """Test token extraction."""

    def test_drops_short_tokens(self):
        """Initials and single letters are discarded."""
        assert tokenize("Juan P. Pérez") == ["juan", "perez"]

    def test_preserves_order(self):
        """Tokens keep their order in the name."""
        assert tokenize("Lopez Maria Ana") == ["lopez", "maria", "ana"]

    def test_empty(self):
        """No tokens for empty or punctuation-only names."""
        assert tokenize(None) == []
        assert tokenize("- . -") == []


class TestSpreadsheetValues:
    """Test header matching and cell parsing."""

    def test_normalize_header_keeps_punctuation(self):
        """Headers fold accents and case but keep separators."""
        assert normalize_header(" Observación ") == "observacion"
        assert normalize_header("Usuario / Celular") == "usuario / celular"
        assert normalize_header(None) == ""

    @pytest.mark.parametrize("value", [True, 1, "1", "Sí", "si", "YES", "y", "true", "T"])
    def test_parse_bool_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", [False, 0, "0", "No", "", None, "quizás"])
    def test_parse_bool_falsy(self, value):
        assert parse_bool(value) is False

    def test_parse_date_day_first(self):
        """d/m/yyyy and d-m-yy strings are day-first."""
        assert parse_date("15/08/2025") == date(2025, 8, 15)
        assert parse_date("3-9-25") == date(2025, 9, 3)

    def test_parse_date_objects_and_iso(self):
        """Date cells and ISO strings are accepted."""
        assert parse_date(datetime(2025, 8, 15, 10, 30)) == date(2025, 8, 15)
        assert parse_date(date(2025, 1, 2)) == date(2025, 1, 2)
        assert parse_date("2025-08-15") == date(2025, 8, 15)

    def test_parse_date_invalid(self):
        """Unparseable values give None."""
        assert parse_date(None) is None
        assert parse_date("") is None
        assert parse_date("31/02/2025") is None
        assert parse_date("mañana") is None

    def test_format_fecha_origen(self):
        """Origin dates are written day/month/year without padding."""
        assert format_fecha_origen(date(2025, 8, 5)) == "5/8/2025"
