"""Unit tests for field, date and path normalization."""

import pytest

from obra_photo.parsing.normalize import (
    DEFAULT_CONFIDENCE,
    build_dest_path,
    month_from_name,
    normalize_confidence,
    normalize_date,
    normalize_field,
    truncate_dest,
)


class TestNormalizeField:
    """Tests for normalize_field."""

    def test_uppercases_and_joins_words(self) -> None:
        assert normalize_field("Cortina Atirantada") == "CORTINA_ATIRANTADA"

    def test_strips_accents(self) -> None:
        assert normalize_field("Contenção") == "CONTENCAO"

    def test_drops_characters_outside_path_alphabet(self) -> None:
        assert normalize_field("bso-04 (norte)") == "BSO04_NORTE"

    def test_collapses_whitespace_runs(self) -> None:
        assert normalize_field("  muro   de\tarrimo ") == "MURO_DE_ARRIMO"

    @pytest.mark.parametrize("value", [None, "", 42, ["BSO"]])
    def test_missing_or_non_string_returns_default(self, value: object) -> None:
        assert normalize_field(value, "NAO_IDENTIFICADO") == "NAO_IDENTIFICADO"

    def test_value_reduced_to_nothing_returns_default(self) -> None:
        assert normalize_field("???", "OUTROS") == "OUTROS"


class TestNormalizeDate:
    """Tests for normalize_date."""

    def test_day_month_year(self) -> None:
        assert normalize_date("24/11/2025") == "24/11/2025"

    def test_pads_single_digits(self) -> None:
        assert normalize_date("3/2/2025") == "03/02/2025"

    def test_iso_format(self) -> None:
        assert normalize_date("2025-11-24") == "24/11/2025"

    def test_exif_timestamp(self) -> None:
        assert normalize_date("2025:11:24 10:15:00") == "24/11/2025"

    def test_portuguese_long_form(self) -> None:
        assert normalize_date("24 de nov. de 2025") == "24/11/2025"

    def test_portuguese_long_form_with_accented_month(self) -> None:
        assert normalize_date("7 de março de 2024") == "07/03/2024"

    def test_date_embedded_in_text(self) -> None:
        assert normalize_date("Foto tirada em 05/06/2025 às 10h") == "05/06/2025"

    def test_invalid_month_rejected(self) -> None:
        assert normalize_date("24/13/2025") is None

    @pytest.mark.parametrize("value", [None, "", "ontem", 20251124])
    def test_unparseable_returns_none(self, value: object) -> None:
        assert normalize_date(value) is None


class TestMonthFromName:
    """Tests for month_from_name."""

    @pytest.mark.parametrize(
        "name,expected",
        [("nov", 11), ("Novembro", 11), ("mar.", 3), ("Março", 3), ("dez", 12)],
    )
    def test_known_names(self, name: str, expected: int) -> None:
        assert month_from_name(name) == expected

    def test_unknown_name(self) -> None:
        assert month_from_name("foo") is None


class TestNormalizeConfidence:
    """Tests for normalize_confidence."""

    def test_fraction_kept(self) -> None:
        assert normalize_confidence(0.85) == pytest.approx(0.85)

    def test_percentage_scaled_down(self) -> None:
        assert normalize_confidence(85) == pytest.approx(0.85)

    def test_numeric_string(self) -> None:
        assert normalize_confidence("0.9") == pytest.approx(0.9)

    def test_negative_clamped_to_zero(self) -> None:
        assert normalize_confidence(-0.2) == 0.0

    def test_above_hundred_clamped_to_one(self) -> None:
        assert normalize_confidence(250) == 1.0

    @pytest.mark.parametrize("value", [None, "alta", True, float("nan")])
    def test_unusable_values_use_default(self, value: object) -> None:
        assert normalize_confidence(value) == DEFAULT_CONFIDENCE


class TestDestinationPath:
    """Tests for build_dest_path and truncate_dest."""

    def test_path_with_date_folders(self) -> None:
        dest = build_dest_path("BSO_04", "CONTENCAO", "TIRANTE", "24/11/2025")

        assert dest == "organized_photos/BSO_04/CONTENCAO/TIRANTE/11_NOVEMBRO/24_11"

    def test_flat_path_when_not_organizing_by_date(self) -> None:
        dest = build_dest_path("BSO_04", "CONTENCAO", "TIRANTE", "24/11/2025", False)

        assert dest == "organized_photos/BSO_04/CONTENCAO/TIRANTE"

    def test_flat_path_without_date(self) -> None:
        dest = build_dest_path("BSO_04", "CONTENCAO", "TIRANTE", None)

        assert dest == "organized_photos/BSO_04/CONTENCAO/TIRANTE"

    def test_march_folder_has_no_accent(self) -> None:
        dest = build_dest_path("PORTICO_01", "RODOVIARIA", "PORTICO", "01/03/2025")

        assert dest.endswith("/03_MARCO/01_03")

    def test_truncate_keeps_base_segments(self) -> None:
        dest = "organized_photos/BSO_04/CONTENCAO/TIRANTE/11_NOVEMBRO/24_11"

        assert truncate_dest(dest) == "organized_photos/BSO_04/CONTENCAO/TIRANTE"

    def test_truncate_leaves_short_paths_alone(self) -> None:
        assert truncate_dest("organized_photos/BSO_04") == "organized_photos/BSO_04"
