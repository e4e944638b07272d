"""Unit tests for the KTP field registry and grammars."""

import pytest

from indodoc.ktp.targets import (
    BLOOD_TYPES,
    KTP_TARGETS,
    correct_blood_type,
    correct_jakarta_territory,
    correct_nationality,
    correct_rt_rw,
    correct_sex,
    make_nik_corrector,
)


def _correct(name, text, history=None):
    return KTP_TARGETS[name].correction.corrector(text, history)


class TestNIK:
    """Test the NIK grammar."""

    def test_label_dropped(self):
        """Test the label and colon are dropped."""
        assert _correct("nik", "NIK : 3171015708900001") == "3171015708900001"

    def test_letter_confusions(self):
        """Test O and I read in place of digits are mapped."""
        assert _correct("nik", "317IO15708900001") == "3171015708900001"

    def test_window_with_valid_birth_code(self):
        """Test a stray leading digit is skipped by the birth code check."""
        assert _correct("nik", "93171015708900001") == "3171015708900001"

    def test_invalid_birth_code(self):
        """Test a number without a valid DDMMYY code is rejected."""
        assert _correct("nik", "3171019913900001") is None

    def test_too_short(self):
        """Test fewer than sixteen digits are rejected."""
        assert _correct("nik", "31710157089") is None

    def test_custom_rules(self):
        """Test the confusion map is configurable."""
        corrector = make_nik_corrector({"Q": "0"})

        assert corrector("3171Q15708900001") == "3171015708900001"


class TestHeaderGrammars:
    """Test province, regency and city."""

    def test_province(self):
        """Test the PROVINSI label is stripped."""
        assert _correct("province", "PROVlNSI JAWA BARAT") == "JAWA BARAT"

    def test_province_history(self):
        """Test the province snaps to the history."""
        assert _correct("province", "PROVINSI DKI JAKRTA", ["DKI JAKARTA"]) == "DKI JAKARTA"

    def test_regency(self):
        """Test regencies with and without the label."""
        assert _correct("regency", "KABUPATEN BOGOR") == "BOGOR"
        assert _correct("regency", "KEPULAUAN SERIBU") == "KEPULAUAN SERIBU"
        assert _correct("regency", "KOTA BANDUNG") is None

    def test_city(self):
        """Test cities and Jakarta territories."""
        assert _correct("city", "KOTA BANDUNG") == "BANDUNG"
        assert _correct("city", "JAKARTA SELATAN") == "JAKARTA SELATAN"
        assert _correct("city", "KABUPATEN BOGOR") is None

    def test_jakarta_territory(self):
        """Test a misread JAKARTA is repaired."""
        assert correct_jakarta_territory("JAKRTA timur") == "JAKARTA TIMUR"
        assert correct_jakarta_territory("SURABAYA") is None


class TestRowGrammars:
    """Test the positional row grammars."""

    def test_name(self):
        """Test label residue is dropped."""
        assert _correct("name", ": BUDI SANTOSO") == "BUDI SANTOSO"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (": LAKI-LAKI GOL. DARAH : O", "LAKI-LAKI"),
            ("PEREMPUAN", "PEREMPUAN"),
            ("LAKI LAKI", "LAKI-LAKI"),
            ("LAKl-LAKl", "LAKI-LAKI"),
        ],
    )
    def test_sex(self, raw, expected):
        """Test sex values, including a lost hyphen."""
        assert _correct("sex", raw) == expected

    def test_sex_closed_world(self):
        """Test unrelated text is rejected."""
        assert correct_sex("XXXXXXXXXXXX") is None

    def test_address(self):
        """Test addresses keep digits, slashes and dots."""
        assert _correct("address", "Alamat : JL. MAWAR NO. 12") == "JL. MAWAR NO. 12"

    @pytest.mark.parametrize("raw, expected", [("007 / 008", "007/008"), ("- / 012", "-/012"), ("07/8", None)])
    def test_rt_rw(self, raw, expected):
        """Test neighbourhood numbers."""
        assert correct_rt_rw(raw) == expected

    def test_religion(self):
        """Test religions are matched exactly after fuzzy repair."""
        assert _correct("religion", ": lSLAM") == "ISLAM"
        assert _correct("religion", "KRISTEN PROTESTAN") is None

    def test_marital_status(self):
        """Test space-insensitive marital status matching."""
        assert _correct("marital_status", ": BELUM KAWlN") == "BELUM KAWIN"
        assert _correct("marital_status", "BELUMKAWIN") == "BELUM KAWIN"

    @pytest.mark.parametrize("raw", ["WNI", "WM1", "WNL"])
    def test_citizenship(self, raw):
        """Test common misreads of WNI."""
        assert _correct("citizenship", raw) == "WNI"

    def test_foreign_citizenship_kept(self):
        """Test other values fall back to the history."""
        assert correct_nationality("ASING") == "ASING"

    @pytest.mark.parametrize(
        "raw, expected",
        [(": SEUMUR HIDUP", "SEUMUR HIDUP"), ("SEUMUR HIDUF", "SEUMUR HIDUP"), ("17-08-2025", "17-08-2025")],
    )
    def test_valid_until(self, raw, expected):
        """Test lifetime validity and expiry dates."""
        assert _correct("valid_until", raw) == expected


class TestBloodType:
    """Test the blood type grammar."""

    @pytest.mark.parametrize("raw, expected", [("AB", "AB"), ("o", "O"), ("B +", "B+"), ("A-", "A-")])
    def test_valid(self, raw, expected):
        """Test valid blood types."""
        assert correct_blood_type(raw) == expected

    @pytest.mark.parametrize("raw", ["", "0", "ABO", "X"])
    def test_invalid(self, raw):
        """Test anything else is rejected."""
        assert correct_blood_type(raw) is None

    def test_twelve_types(self):
        """Test four groups with three rhesus forms each."""
        assert len(BLOOD_TYPES) == 12


class TestKTPRegistry:
    """Test the declared KTP fields."""

    def test_positional_rows(self):
        """Test the row order of the positional fields."""
        assert [KTP_TARGETS.by_index[i].name for i in sorted(KTP_TARGETS.by_index)] == [
            "name",
            "sex",
            "address",
            "rt_rw",
            "village",
            "district",
            "religion",
            "marital_status",
            "occupation",
            "citizenship",
            "valid_until",
        ]

    def test_blood_type_is_geometric(self):
        """Test only the blood type has a box."""
        assert [t.name for t in KTP_TARGETS.geometric] == ["blood_type"]

    def test_payload_keys(self):
        """Test every field is in the payload."""
        assert len(KTP_TARGETS.payload_keys) == 18
        assert KTP_TARGETS.payload_keys[0] == "nik"
