import io

import pytest
from PIL import Image

from posterforge.errors import InvalidInputError
from posterforge.models import OutputOptions, ResizeOptions
from posterforge.render.image_modes import apply_resize, cover_fit, encode_image, validate_output_options


def test_cover_fit_crops_center_to_exact_size() -> None:
    image = Image.new("RGB", (400, 100), color="#000000")
    image.paste(Image.new("RGB", (100, 100), color="#ff0000"), (150, 0))

    fitted = cover_fit(image, 50, 50)

    assert fitted.size == (50, 50)
    assert fitted.getpixel((25, 25)) == (255, 0, 0)


def test_resize_modes() -> None:
    image = Image.new("RGBA", (200, 100), color=(10, 20, 30, 255))

    assert apply_resize(image, None) is image
    assert apply_resize(image, ResizeOptions(width=100)).size == (100, 50)
    assert apply_resize(image, ResizeOptions(height=50)).size == (100, 50)
    assert apply_resize(image, ResizeOptions(width=50, height=50, fit="fill")).size == (50, 50)
    assert apply_resize(image, ResizeOptions(width=50, height=50, fit="cover")).size == (50, 50)

    contained = apply_resize(image, ResizeOptions(width=100, height=100, fit="contain"))
    assert contained.size == (100, 100)
    assert contained.getpixel((50, 2))[3] == 0
    assert contained.getpixel((50, 50))[3] == 255


def test_validate_output_options_defaults_and_aliases() -> None:
    assert validate_output_options(None) == OutputOptions(format="png")
    assert validate_output_options(OutputOptions(format="JPG", quality=70)).format == "jpeg"


@pytest.mark.parametrize(
    "options",
    [
        OutputOptions(format="gif"),
        OutputOptions(format="jpeg", quality=0),
        OutputOptions(format="jpeg", quality=101),
        OutputOptions(resize=ResizeOptions(width=0)),
        OutputOptions(resize=ResizeOptions(width=100, fit="stretch")),  # type: ignore[arg-type]
    ],
)
def test_invalid_output_options(options: OutputOptions) -> None:
    with pytest.raises(InvalidInputError):
        validate_output_options(options)


def test_encode_png_and_jpeg() -> None:
    image = Image.new("RGBA", (32, 16), color=(200, 100, 50, 128))

    png = encode_image(image, OutputOptions(format="png"))
    jpeg = encode_image(image, OutputOptions(format="jpeg"))

    assert png.startswith(b"\x89PNG")
    assert jpeg.startswith(b"\xff\xd8")
    with Image.open(io.BytesIO(jpeg)) as decoded:
        assert decoded.mode == "RGB"
        assert decoded.size == (32, 16)
