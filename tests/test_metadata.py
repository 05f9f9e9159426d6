"""
Tests for the Metadata Extractor
================================

Covers:
1. Field resolution from real EXIF written with piexif
2. GPS reconstruction from degree/minute/second components
3. Alias and group priority on hand-built tag groups
4. Value reduction (rationals, arrays, padded byte strings)
5. Fallback to empty metadata on unparseable input
"""

import json
from datetime import datetime

import piexif
import pytest
from PIL.TiffImagePlugin import IFDRational

from app.services.metadata import (
    ImageMetadata,
    MetadataExtractor,
    apex_power,
    dms_to_decimal,
    parse_exif_datetime,
    signed_coordinate,
    to_number,
    to_scalar,
)
from tests.factories import build_jpeg, canon_exif


@pytest.fixture
def extractor():
    return MetadataExtractor()


# =============================================================================
# REAL EXIF
# =============================================================================


class TestExtractFromJpeg:
    def test_camera_fields(self, extractor, canon_jpeg):
        metadata = extractor.extract(canon_jpeg)

        assert metadata.camera_make == "Canon"
        assert metadata.camera_model == "Canon EOS R5"
        assert metadata.lens_model == "RF24-70mm F2.8 L IS USM"
        assert metadata.aperture == "f/2.8"
        assert metadata.shutter_speed == "1/160"
        assert metadata.iso == "400"
        assert metadata.focal_length == "50 mm"

    def test_dimensions_come_from_container(self, extractor, canon_jpeg):
        metadata = extractor.extract(canon_jpeg)
        assert (metadata.width, metadata.height) == (120, 80)

    def test_capture_time_prefers_datetime_original(self, extractor, canon_jpeg):
        # IFD0 also carries DateTime; DateTimeOriginal is the first alias
        metadata = extractor.extract(canon_jpeg)

        assert metadata.datetime_original == "2024:05:01 10:20:30"
        assert metadata.captured_at == datetime(2024, 5, 1, 10, 20, 30)

    def test_gps_south_east(self, extractor, canon_jpeg):
        metadata = extractor.extract(canon_jpeg)

        assert metadata.has_gps
        assert metadata.gps_lat == pytest.approx(-37.8)
        assert metadata.gps_lon == pytest.approx(144.96)

    def test_gps_north_west(self, extractor):
        data = build_jpeg(exif=canon_exif(lat_ref="N", lon_ref="W"))
        metadata = extractor.extract(data)

        assert metadata.gps_lat == pytest.approx(37.8)
        assert metadata.gps_lon == pytest.approx(-144.96)

    def test_raw_blob_is_json(self, extractor, canon_jpeg):
        metadata = extractor.extract(canon_jpeg)
        raw = json.loads(metadata.raw_json())

        assert raw["Make"] == "Canon"
        assert raw["FNumber"] == pytest.approx(2.8)
        assert raw["GPSLatitudeRef"] == "S"
        assert raw["ImageWidth"] == 120

    def test_image_without_tags(self, extractor, plain_jpeg):
        metadata = extractor.extract(plain_jpeg)

        assert (metadata.width, metadata.height) == (64, 48)
        assert metadata.camera_make is None
        assert metadata.datetime_original is None
        assert not metadata.has_gps


class TestExtractionFallback:
    @pytest.mark.parametrize("data", [b"", b"definitely not an image"])
    def test_unparseable_bytes_yield_empty_metadata(self, extractor, data):
        metadata = extractor.extract(data)

        assert metadata == ImageMetadata()
        assert metadata.raw == {}
        assert metadata.raw_json() == "{}"

    def test_out_of_range_apex_values_are_dropped(self, extractor):
        exif = canon_exif()
        del exif["Exif"][piexif.ExifIFD.FNumber]
        del exif["Exif"][piexif.ExifIFD.ExposureTime]
        exif["Exif"][piexif.ExifIFD.ShutterSpeedValue] = (-2000, 1)
        exif["Exif"][piexif.ExifIFD.ApertureValue] = (5000, 1)

        metadata = extractor.extract(build_jpeg(exif=exif))

        assert metadata.camera_make == "Canon"
        assert metadata.shutter_speed is None
        assert metadata.aperture is None
        assert metadata.has_gps

    def test_corrupt_shutter_speed_beside_exposure_time(self, extractor):
        exif = canon_exif()
        exif["Exif"][piexif.ExifIFD.ShutterSpeedValue] = (-2000, 1)

        metadata = extractor.extract(build_jpeg(exif=exif))

        assert metadata.camera_make == "Canon"
        assert metadata.shutter_speed == "1/160"

    def test_build_error_yields_empty_metadata(self, extractor, canon_jpeg, monkeypatch):
        def broken_build(groups):
            raise ValueError("bad tag")

        monkeypatch.setattr(extractor, "build", broken_build)

        assert extractor.extract(canon_jpeg) == ImageMetadata()


# =============================================================================
# GPS
# =============================================================================


class TestGps:
    def test_three_components(self):
        assert dms_to_decimal((37, 48, 0)) == pytest.approx(37.8)

    def test_south_reference_negates(self):
        assert signed_coordinate((37, 48, 0), "S", "S") == pytest.approx(-37.8)

    def test_rational_components(self):
        value = (IFDRational(37, 1), IFDRational(48, 1), IFDRational(0, 1))
        assert signed_coordinate(value, "S", "S") == pytest.approx(-37.8)

    def test_two_components(self):
        assert dms_to_decimal((10, 30)) == pytest.approx(10.5)

    def test_one_component(self):
        assert dms_to_decimal((12.25,)) == pytest.approx(12.25)

    def test_no_components(self):
        assert dms_to_decimal(()) is None
        assert signed_coordinate(None, "S", "S") is None

    def test_west_reference_as_bytes(self):
        assert signed_coordinate((74, 0, 0), b"W\x00", "W") == pytest.approx(-74.0)


# =============================================================================
# FIELD RESOLUTION
# =============================================================================


class TestResolution:
    def test_alias_order_beats_group_order(self, extractor):
        groups = {
            "ifd0": {"DateTime": "2020:01:01 00:00:00"},
            "exif": {"DateTimeOriginal": "2024:05:01 10:20:30"},
        }
        metadata = extractor.build(groups)
        assert metadata.datetime_original == "2024:05:01 10:20:30"

    def test_group_order_for_same_alias(self, extractor):
        groups = {"ifd0": {"Make": "Nikon"}, "exif": {"Make": "Canon"}}
        assert extractor.build(groups).camera_make == "Nikon"

    def test_empty_values_are_skipped(self, extractor):
        groups = {"ifd0": {"Make": "  "}, "exif": {"Make": "Sony"}}
        assert extractor.build(groups).camera_make == "Sony"

    def test_lens_falls_back_to_lens_make(self, extractor):
        groups = {"exif": {"LensMake": "Sigma"}}
        assert extractor.build(groups).lens_model == "Sigma"

    def test_iso_alias(self, extractor):
        groups = {"exif": {"PhotographicSensitivity": 3200}}
        assert extractor.build(groups).iso == "3200"

    def test_apex_aperture_value(self, extractor):
        groups = {"exif": {"ApertureValue": IFDRational(3, 1)}}
        assert extractor.build(groups).aperture == "f/2.8"

    def test_apex_shutter_speed_value(self, extractor):
        groups = {"exif": {"ShutterSpeedValue": IFDRational(732, 100)}}
        assert extractor.build(groups).shutter_speed == "1/160"

    def test_apex_overflow(self, extractor):
        groups = {"exif": {"ShutterSpeedValue": IFDRational(-2000, 1), "ApertureValue": IFDRational(5000, 1)}}
        metadata = extractor.build(groups)
        assert (metadata.shutter_speed, metadata.aperture) == (None, None)

    def test_apex_underflow(self, extractor):
        groups = {"exif": {"ShutterSpeedValue": IFDRational(2000, 1)}}
        assert extractor.build(groups).shutter_speed is None

    def test_apex_power(self):
        assert apex_power(3) == 8.0
        assert apex_power(5000) is None

    def test_long_exposure(self, extractor):
        groups = {"exif": {"ExposureTime": IFDRational(2, 1)}}
        assert extractor.build(groups).shutter_speed == "2"


class TestDimensions:
    def test_pixel_dimension_fallback(self, extractor):
        groups = {"file": {}, "exif": {"PixelXDimension": 4000, "PixelYDimension": 3000}}
        assert extractor.resolve_dimensions(groups) == (4000, 3000)

    def test_exif_image_width_before_pixel_dimension(self, extractor):
        groups = {
            "exif": {
                "ImageWidth": 1024,
                "ImageLength": 768,
                "PixelXDimension": 4000,
                "PixelYDimension": 3000,
            }
        }
        assert extractor.resolve_dimensions(groups) == (1024, 768)

    def test_partial_pair_is_skipped(self, extractor):
        groups = {"exif": {"ImageWidth": 1024, "PixelXDimension": 4000, "PixelYDimension": 3000}}
        assert extractor.resolve_dimensions(groups) == (4000, 3000)

    @pytest.mark.parametrize("width,height", [(0, 100), (100, -1), ("abc", 100), (100, None)])
    def test_invalid_dimensions_are_dropped(self, extractor, width, height):
        groups = {"file": {"ImageWidth": width, "ImageHeight": height}}
        assert extractor.resolve_dimensions(groups) == (None, None)


# =============================================================================
# VALUE REDUCTION
# =============================================================================


class TestValueReduction:
    def test_rational_string(self):
        assert to_number("1/160") == pytest.approx(0.00625)

    def test_rational_with_zero_denominator(self):
        assert to_scalar(IFDRational(1, 0)) is None
        assert to_number("1/0") is None

    def test_array_takes_first_parseable_element(self):
        assert to_scalar((None, "", 200, 400)) == 200

    def test_padded_bytes(self):
        assert to_scalar(b"Canon\x00\x00\x00") == "Canon"

    def test_unparseable_text(self):
        assert to_number("n/a") is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024:05:01 10:20:30", datetime(2024, 5, 1, 10, 20, 30)),
        ("2024-05-01 10:20:30", datetime(2024, 5, 1, 10, 20, 30)),
        ("2024-05-01T10:20:30", datetime(2024, 5, 1, 10, 20, 30)),
        ("0000:00:00 00:00:00", None),
        (None, None),
    ],
)
def test_parse_exif_datetime(value, expected):
    assert parse_exif_datetime(value) == expected
