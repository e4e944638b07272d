"""Unit tests for the KTP pipeline."""

from unittest.mock import patch

import pytest

from indodoc.common.errors import DocumentNotFoundError
from indodoc.common.types import RecognitionResult, Rectangle
from indodoc.ktp.locator import KTPGeometry
from indodoc.ktp.processor import KTPOCR
from indodoc.ktp.targets import BLOOD_TYPE_BOX
from indodoc.ocr.config_loader import Config
from indodoc.raster.surface import RasterSurface

from fakes import make_line, make_result

VIEW_WIDTH = 960
VIEW_HEIGHT = 600

ROWS = (
    ": BUDI SANTOSO",
    "JAKARTA, 17-08-1985",
    ": LAKI-LAKI GOL. DARAH : O",
    ": JL. MAWAR NO. 12",
    ": 007/008",
    ": KEBON JERUK",
    ": KEMBANGAN",
    ": ISLAM",
    ": BELUM KAWIN",
    ": KARYAWAN SWASTA",
    ": WNI",
    ": SEUMUR HIDUP",
)


def _blood_box():
    return RasterSurface.blank(VIEW_WIDTH, VIEW_HEIGHT).rect_from_relative(BLOOD_TYPE_BOX).to_int_tuple()


def _geometry(nik_candidate=None):
    return KTPGeometry(
        rect=Rectangle(left=200, top=300, width=500, height=540),
        angle=0.0,
        word_width=200,
        word_height=30,
        backup=RasterSurface.blank(1440, 900),
        province_line=make_line("PROVINSI DKI JAKARTA", 85),
        region_line=make_line("JAKARTA BARAT", 80),
        nik_candidate=nik_candidate,
    )


def _use_responses(multiplexor, rows=ROWS, blood="AB", nik=None):
    def default(image, rect):
        if rect is None:
            return make_result(*(make_line(row, 80) for row in rows))
        if rect.to_int_tuple() == _blood_box():
            return make_result(make_line(blood, 70))
        return RecognitionResult()

    multiplexor.schedulers["default"].responder = default
    multiplexor.schedulers["number"].responder = lambda image, rect: (
        make_result(make_line(nik, 90)) if nik else RecognitionResult()
    )


@pytest.fixture
def ocr(fake_multiplexor):
    ocr = KTPOCR(config=Config(), multiplexor=fake_multiplexor)
    ocr.surface = RasterSurface.blank(VIEW_WIDTH, VIEW_HEIGHT)
    yield ocr
    ocr.terminate()


class TestExtractFields:
    """Test the KTP field reads."""

    def test_full_card(self, ocr, fake_multiplexor):
        """Test every field of a clean card."""
        _use_responses(fake_multiplexor, nik="3171015708900001")

        payload = ocr.extract_fields(_geometry())

        assert payload == {
            "nik": "3171015708900001",
            "province": "DKI JAKARTA",
            "regency": None,
            "city": "JAKARTA BARAT",
            "blood_type": "AB",
            "name": "BUDI SANTOSO",
            "place_of_birth": "JAKARTA",
            "date_of_birth": "17-08-1985",
            "sex": "LAKI-LAKI",
            "address": "JL. MAWAR NO. 12",
            "rt_rw": "007/008",
            "village": "KEBON JERUK",
            "district": "KEMBANGAN",
            "religion": "ISLAM",
            "marital_status": "BELUM KAWIN",
            "occupation": "KARYAWAN SWASTA",
            "citizenship": "WNI",
            "valid_until": "SEUMUR HIDUP",
        }

    def test_nik_band_beats_weaker_candidate(self, ocr, fake_multiplexor):
        """Test the digits-only band read wins on confidence."""
        _use_responses(fake_multiplexor, nik="3171015708900009")
        candidate = make_line("NIK : 3171015708900001", 60)

        assert ocr.extract_fields(_geometry(candidate))["nik"] == "3171015708900009"

    def test_nik_candidate_used_when_band_is_empty(self, ocr, fake_multiplexor):
        """Test the locator's candidate is kept when the band reads nothing."""
        _use_responses(fake_multiplexor)
        candidate = make_line("NIK : 3171015708900001", 60)

        assert ocr.extract_fields(_geometry(candidate))["nik"] == "3171015708900001"

    def test_nik_band_cut_from_backup(self, ocr, fake_multiplexor):
        """Test the band job has the NIK region size."""
        _use_responses(fake_multiplexor)

        ocr.extract_fields(_geometry())

        assert fake_multiplexor.schedulers["number"].jobs == [((60, 500), None)]

    def test_missing_rows(self, ocr, fake_multiplexor):
        """Test rows the engine did not return are None."""
        _use_responses(fake_multiplexor, rows=ROWS[:3], blood="X")

        payload = ocr.extract_fields(_geometry())

        assert payload["sex"] == "LAKI-LAKI"
        assert payload["address"] is None
        assert payload["valid_until"] is None
        assert payload["blood_type"] is None

    def test_history_applied(self, ocr, fake_multiplexor):
        """Test row fields snap to confirmed values."""
        ocr.history["occupation"] = ["PELAJAR/MAHASISWA"]
        rows = list(ROWS)
        rows[9] = ": PELAJAR MAHASISWA"
        _use_responses(fake_multiplexor, rows=rows)

        assert ocr.extract_fields(_geometry())["occupation"] == "PELAJAR/MAHASISWA"


class TestDebugOverlay:
    """Test the field overlay debug image."""

    def test_blood_box_and_rows_marked(self, ocr, fake_multiplexor):
        """Test the blood type box and every recognized row are outlined."""
        _use_responses(fake_multiplexor)
        ocr.debug_callback = lambda label, pixels: None

        keep = lambda surface, rects: surface
        with patch.object(RasterSurface, "mark_boxes", autospec=True, side_effect=keep) as mark:
            ocr.extract_fields(_geometry())

        marked = [rect.to_int_tuple() for rect in mark.call_args.args[1]]
        assert marked[0] == _blood_box()
        assert len(marked) == 1 + len(ROWS)
        assert marked[1] == (0, 0, 100, 20)


class TestPlaceAndDate:
    """Test the split of the birth row."""

    def test_date_only(self, ocr):
        """Test a row holding only the date."""
        reads = ocr.read_place_and_date([make_line("x"), make_line("17-08-1985", 66)])

        assert reads["place_of_birth"] is None
        assert reads["date_of_birth"].text == "17-08-1985"
        assert reads["date_of_birth"].confidence == 66

    def test_missing_row(self, ocr):
        """Test both fields are None without the row."""
        assert ocr.read_place_and_date([make_line("BUDI")]) == {"place_of_birth": None, "date_of_birth": None}

    def test_invalid_date(self, ocr):
        """Test an unreadable date does not affect the place."""
        reads = ocr.read_place_and_date([make_line("x"), make_line("BANDUNG, 1?-0?-19")])

        assert reads["place_of_birth"].text == "BANDUNG"
        assert reads["date_of_birth"] is None


class TestRun:
    """Test the end-to-end entry point."""

    def test_unlocatable_card(self, ocr):
        """Test a blank photo fails at the header."""
        ocr.mount_pixels(RasterSurface.blank(300, 200).pixels)

        with pytest.raises(DocumentNotFoundError) as exc_info:
            ocr.run()

        assert exc_info.value.code == "LOC-E101"
