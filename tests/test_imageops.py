# Tests for the pixel algorithms
"""
Tests for decoding, blur, color correction, crop, transform, blend, text and grid.
"""

import numpy as np
import pytest

from lumina.imageops import (
    BlendMode,
    GridCell,
    blend,
    box_blur,
    color_correct,
    compose_grid,
    crop,
    decode_image,
    draw_text,
    gaussian_blur,
    is_image_value,
    to_data_url,
    transform,
)
from lumina.imageops.geometry import transformed_canvas_size

from conftest import solid


class TestBuffers:
    """Test image value decoding."""

    def test_rgb_array_gains_alpha(self):
        rgb = np.zeros((4, 5, 3), dtype=np.uint8)
        rgba = decode_image(rgb)
        assert rgba.shape == (4, 5, 4)
        assert (rgba[:, :, 3] == 255).all()

    def test_data_url_round_trip(self):
        image = solid((10, 20, 30, 255), 3, 2)
        url = to_data_url(image)
        assert url.startswith('data:image/png;base64,')
        assert np.array_equal(decode_image(url), image)

    def test_none_decodes_to_none(self):
        assert decode_image(None) is None

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            decode_image(42)

    @pytest.mark.parametrize('value', ['/etc/passwd', '/dev/zero', 'photo.png', 'data:image/png,abc'])
    def test_plain_strings_not_opened(self, value, monkeypatch):
        def fail_open(*args, **kwargs):
            raise AssertionError("filesystem accessed")

        monkeypatch.setattr('builtins.open', fail_open)
        with pytest.raises(ValueError, match='data URL'):
            decode_image(value)

    def test_is_image_value(self):
        assert is_image_value(solid((0, 0, 0)))
        assert is_image_value('data:image/png;base64,xyz')
        assert not is_image_value('hello')
        assert not is_image_value(5)


class TestBlur:
    """Test box and Gaussian blur."""

    def test_box_blur_radius_zero_is_identity(self):
        image = np.random.default_rng(1).integers(0, 256, (6, 7, 4), dtype=np.uint8)
        result = box_blur(image, 0)
        assert np.array_equal(result, image)
        assert result is not image

    def test_box_blur_clamps_edges(self):
        """A 3-pixel row [0, 90, 0] with radius 1 averages to 30 everywhere."""
        image = np.zeros((1, 3, 4), dtype=np.uint8)
        image[0, 1] = (90, 90, 90, 90)
        result = box_blur(image, 1)
        assert (result == 30).all()

    def test_box_blur_preserves_uniform_image(self, gray_image):
        assert np.array_equal(box_blur(gray_image, 4), gray_image)

    def test_gaussian_blur_preserves_shape(self, red_image):
        result = gaussian_blur(red_image, 3)
        assert result.shape == red_image.shape
        assert result.dtype == np.uint8


class TestColorCorrection:
    """Test the color correction pipeline."""

    def test_temperature_shifts_red_and_blue(self):
        """(100, 100, 100) with temperature 10 becomes (110, 100, 90)."""
        result = color_correct(solid((100, 100, 100), 2, 2), temperature=10)
        assert tuple(result[0, 0]) == (110, 100, 90, 255)

    def test_neutral_parameters_are_identity(self):
        image = np.random.default_rng(2).integers(0, 256, (5, 5, 4), dtype=np.uint8)
        assert np.array_equal(color_correct(image), image)

    def test_alpha_untouched(self):
        image = solid((50, 60, 70, 33), 2, 2)
        result = color_correct(image, brightness=80, contrast=2)
        assert (result[:, :, 3] == 33).all()

    def test_values_clamped(self):
        result = color_correct(solid((250, 250, 250), 1, 1), brightness=100)
        assert tuple(result[0, 0, :3]) == (255, 255, 255)

    def test_saturation_zero_gives_gray(self):
        result = color_correct(solid((200, 100, 0), 1, 1), saturation=0)
        r, g, b = result[0, 0, :3]
        assert r == g == b

    def test_levels_stretch(self):
        """black=50, white=150 maps 100 to mid gray."""
        result = color_correct(solid((100, 100, 100), 1, 1), black=50, white=150)
        assert tuple(result[0, 0, :3]) == (128, 128, 128)


class TestGeometry:
    """Test crop and transform."""

    def test_crop_inside(self):
        image = np.arange(20 * 20 * 4, dtype=np.uint32).reshape(20, 20, 4).astype(np.uint8)
        result = crop(image, 5, 5, 10, 10)
        assert result.shape == (10, 10, 4)
        assert np.array_equal(result, image[5:15, 5:15])

    def test_crop_outside_is_transparent(self, red_image):
        result = crop(red_image, 15, 15, 10, 10)
        assert result.shape == (10, 10, 4)
        assert tuple(result[0, 0]) == (255, 0, 0, 255)
        assert tuple(result[9, 9]) == (0, 0, 0, 0)

    def test_crop_minimum_size(self, red_image):
        assert crop(red_image, 0, 0, 0, -5).shape == (1, 1, 4)

    def test_canvas_size_identity(self):
        assert transformed_canvas_size(20, 10, 1.0, 0) == (20, 10)

    def test_canvas_size_rotated_and_translated(self):
        assert transformed_canvas_size(20, 10, 1.0, 90) == (10, 20)
        assert transformed_canvas_size(20, 10, 2.0, 0, x=5, y=-3) == (45, 23)

    def test_identity_transform(self, red_image):
        result = transform(red_image)
        assert result.shape == red_image.shape
        assert tuple(result[10, 10]) == (255, 0, 0, 255)

    def test_translation_leaves_transparent_margin(self, red_image):
        result = transform(red_image, x=10, y=0)
        assert result.shape == (20, 30, 4)
        assert result[10, 2, 3] == 0
        assert tuple(result[10, 20]) == (255, 0, 0, 255)

    def test_non_positive_scale_rejected(self, red_image):
        with pytest.raises(ValueError):
            transform(red_image, scale=0)


class TestBlend:
    """Test compositing and blend modes."""

    def test_multiply(self):
        base = solid((200, 100, 50), 2, 2)
        layer = solid((128, 128, 128), 2, 2)
        result = blend(base, layer, 'multiply')
        assert tuple(result[0, 0]) == (100, 50, 25, 255)

    def test_normal_with_opacity(self):
        result = blend(solid((255, 0, 0), 2, 2), solid((0, 0, 255), 2, 2), 'normal', opacity=0.5)
        assert tuple(result[0, 0]) == (128, 0, 128, 255)

    def test_union_canvas_with_negative_offset(self):
        result = blend(solid((255, 0, 0), 10, 10), solid((0, 255, 0), 5, 5), x=-5, y=0)
        assert result.shape == (10, 15, 4)
        assert tuple(result[0, 0]) == (0, 255, 0, 255)
        assert tuple(result[0, 14]) == (255, 0, 0, 255)
        assert tuple(result[9, 0]) == (0, 0, 0, 0)

    def test_layer_only(self):
        layer = solid((1, 2, 3), 3, 3)
        assert np.array_equal(blend(None, layer), layer)

    def test_nothing_to_blend(self):
        assert blend(None, None) is None

    def test_every_mode_parses(self):
        for name in ('color-dodge', 'HARD_LIGHT', 'source-over', 'luminosity'):
            assert isinstance(BlendMode.parse(name), BlendMode)

    def test_luminosity_of_gray_layer_is_gray(self):
        result = blend(solid((200, 50, 50), 1, 1), solid((100, 100, 100), 1, 1), 'luminosity')
        r, g, b = result[0, 0, :3]
        assert r > g
        assert g == b


class TestText:
    """Test the text overlay."""

    def test_text_changes_pixels(self):
        image = solid((0, 0, 0), 120, 80)
        result = draw_text(image, 'Hi', x=10, y=10, size=30)
        assert result.shape == image.shape
        assert result[..., :3].max() > 0
        assert image[..., :3].max() == 0

    def test_empty_text_is_identity(self, red_image):
        assert np.array_equal(draw_text(red_image, ''), red_image)

    def test_zero_opacity_is_invisible(self):
        image = solid((0, 0, 0), 60, 40)
        result = draw_text(image, 'X', size=20, opacity=0)
        assert np.array_equal(result, image)


class TestGrid:
    """Test grid composition."""

    def test_grid_size(self):
        cells = [GridCell(solid((255, 0, 0), 10, 8)) for _ in range(5)]
        result = compose_grid(cells, cols=3, gap=2, show_labels=False)
        assert result.shape == (8 * 2 + 2, 10 * 3 + 2 * 2, 4)

    def test_gap_uses_background(self):
        cells = [GridCell(solid((255, 0, 0), 10, 10)) for _ in range(2)]
        result = compose_grid(cells, cols=2, gap=4, show_labels=False)
        assert tuple(result[0, 11]) == (15, 23, 42, 255)

    def test_other_cells_resized_to_first(self):
        cells = [GridCell(solid((255, 0, 0), 10, 10)), GridCell(solid((0, 255, 0), 30, 5))]
        result = compose_grid(cells, cols=2, gap=0, show_labels=False)
        assert result.shape == (10, 20, 4)
        assert tuple(result[5, 15]) == (0, 255, 0, 255)

    def test_label_bar_darkens_cell_bottom(self):
        cells = [GridCell(solid((255, 255, 255), 60, 60), name='a')]
        result = compose_grid(cells, cols=1, gap=0, show_labels=True)
        # top stays white, bar region is darkened (text is only drawn near the left)
        assert tuple(result[5, 55, :3]) == (255, 255, 255)
        assert result[45, 55, 0] < 100

    def test_empty_grid(self):
        assert compose_grid([]) is None
