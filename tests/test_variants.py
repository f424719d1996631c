"""Tests for preprocessing variant generation."""

import numpy as np
import pytest

from weighvision.imaging import variants
from weighvision.imaging.raster import RasterImage
from weighvision.imaging.variants import Mode, ModeParams, generate_variants


def _is_document(image: np.ndarray) -> bool:
    return image.ndim == 2 and image.dtype == np.uint8 and set(np.unique(image)) <= {0, 255}


class TestGenerateVariants:
    def test_plate_mode_builds_four_named_variants(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        built = generate_variants(source, Mode.PLATE)

        assert [v.name for v in built] == ["adaptive", "high_contrast", "inverted", "contrast_stretch"]
        assert not any(v.fallback for v in built)
        assert all(_is_document(v.image) for v in built)

    def test_weight_mode_builds_adaptive_only(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        built = generate_variants(source, Mode.WEIGHT)

        assert [v.name for v in built] == ["adaptive"]
        # 2.5x upscale plus a 20 px border on each side
        assert built[0].image.shape == (140, 390)

    def test_adaptive_shape_includes_border(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        adaptive = generate_variants(source, Mode.PLATE)[0].image

        assert adaptive.shape == (40 * 3 + 40, 140 * 3 + 40)
        assert (adaptive[:20] == 255).all()
        assert (adaptive == 0).any()

    def test_fixed_variants_are_upscaled_without_border(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        for v in generate_variants(source, Mode.PLATE)[1:]:
            assert v.image.shape == (120, 420)

    def test_high_contrast_keeps_dark_glyphs_as_ink(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        image = generate_variants(source, Mode.PLATE, names=("high_contrast",))[0].image

        # Centre of the first glyph, scaled 3x
        assert image[60, 39] == 0
        assert image[3, 3] == 255

    def test_inverted_reads_light_text_on_dark(self, plate_photo):
        source = RasterImage.from_array(255 - plate_photo)
        image = generate_variants(source, Mode.PLATE, names=("inverted",))[0].image

        assert image[60, 39] == 0
        assert image[3, 3] == 255

    def test_custom_params(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        params = ModeParams(scale=2.0, block_size=11, offset=5, pad_margin=0)
        built = generate_variants(source, Mode.PLATE, params, names=("adaptive",))
        assert built[0].image.shape == (80, 280)

    def test_source_is_untouched(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        before = source.pixels.copy()
        generate_variants(source, Mode.PLATE)
        assert np.array_equal(source.pixels, before)

    def test_bytes_source_falls_back_everywhere(self):
        built = generate_variants(b"not an image", Mode.PLATE)
        assert len(built) == 4
        assert all(v.fallback and v.image == b"not an image" for v in built)

    def test_failing_variant_falls_back_to_source(self, plate_photo, monkeypatch):
        def broken(rgba, params):
            raise ValueError("boom")

        monkeypatch.setitem(variants.VARIANT_BUILDERS, "inverted", broken)
        source = RasterImage.from_array(plate_photo)
        built = generate_variants(source, Mode.PLATE)

        by_name = {v.name: v for v in built}
        assert by_name["inverted"].fallback is True
        assert np.array_equal(by_name["inverted"].image, source.pixels)
        assert by_name["adaptive"].fallback is False

    def test_product_mode_has_no_variants(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        with pytest.raises(ValueError):
            generate_variants(source, Mode.PRODUCT)


class TestOriginal:
    def test_decoded_source(self, plate_photo):
        source = RasterImage.from_array(plate_photo)
        variant = variants.original(source)
        assert variant.name == "original"
        assert variant.image.shape == (40, 140, 4)
        assert variant.fallback is False

    def test_bytes_source(self):
        variant = variants.original(b"\x00\x01")
        assert variant.image == b"\x00\x01"
        assert variant.fallback is True
