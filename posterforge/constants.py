MAX_DIMENSION = 10_000
MIN_DIMENSION = 1

MAX_IMAGE_BYTES = 10 * 1024 * 1024
FETCH_TIMEOUT_S = 30.0
MAX_REDIRECTS = 5

MIN_FONT_SIZE = 1
MAX_FONT_SIZE = 500
MAX_LETTER_SPACING = 100
MAX_STROKE_WIDTH = 50
MAX_BORDER_WIDTH = 200
MAX_BLUR = 100

MIN_GRADIENT_STOPS = 2
MAX_GRADIENT_STOPS = 4

OUTPUT_FORMATS = {"png": "PNG", "jpeg": "JPEG", "jpg": "JPEG"}
RESIZE_FITS = ("contain", "cover", "fill")
DEFAULT_JPEG_QUALITY = 85

DEFAULT_FONT = "sans-serif"
BUNDLED_FONTS = {
    "Oswald-Bold": "Oswald-Bold.ttf",
    "Roboto-Regular": "Roboto-Regular.ttf",
    "BebasNeue-Regular": "BebasNeue-Regular.ttf",
}
FONT_EXTENSIONS = {".ttf", ".otf"}

BUNDLED_TEMPLATES = ("classic", "modern")

# (name, percent) in pipeline order
STAGE_LOADING_TEMPLATE = ("loading-template", 0)
STAGE_CREATING_BACKGROUND = ("creating-background", 10)
STAGE_PROCESSING_PHOTO = ("processing-photo", 30)
STAGE_COMPOSITING_PHOTO = ("compositing-photo", 50)
STAGE_RENDERING_TEXT = ("rendering-text", 70)
STAGE_ENCODING_OUTPUT = ("encoding-output", 90)
STAGE_DONE = ("done", 100)
COMPOSE_STAGES = (
    STAGE_LOADING_TEMPLATE,
    STAGE_CREATING_BACKGROUND,
    STAGE_PROCESSING_PHOTO,
    STAGE_COMPOSITING_PHOTO,
    STAGE_RENDERING_TEXT,
    STAGE_ENCODING_OUTPUT,
    STAGE_DONE,
)
