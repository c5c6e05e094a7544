from __future__ import annotations

import contextlib
import io
import ipaddress
import logging
import socket
import threading
import time
from pathlib import Path
from typing import Union
from urllib.parse import urljoin, urlparse

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from posterforge.constants import FETCH_TIMEOUT_S, MAX_IMAGE_BYTES, MAX_REDIRECTS
from posterforge.errors import ImageProcessingError, InvalidInputError
from posterforge.models import ImageMetadata

_log = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, memoryview, str, Path]

_ALLOWED_SCHEMES = {"http", "https"}
_BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}
_CHUNK_SIZE = 64 * 1024


def _is_url(source: str) -> bool:
    return "://" in source


def _host_address(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse every numeric spelling the resolver accepts, e.g. ``127.1`` or ``2130706433``."""
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        try:
            address = ipaddress.IPv4Address(socket.inet_aton(hostname))
        except (OSError, ValueError):
            return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def validate_url(url: str) -> None:
    """Reject URLs that are not plain http(s) or that target the local host."""
    parsed = urlparse(url)
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidInputError("Only HTTP and HTTPS URLs are allowed")
    hostname = (parsed.hostname or "").lower().rstrip(".")
    if not hostname:
        raise InvalidInputError("URL has no host")
    if hostname in _BLOCKED_HOSTNAMES or hostname.endswith(".localhost"):
        raise InvalidInputError("URL points to a blocked host")
    address = _host_address(hostname)
    if address is None:
        return
    if address.is_loopback or address.is_unspecified or address.is_link_local:
        raise InvalidInputError("URL points to a blocked host")


def _abort(response: requests.Response) -> None:
    # shutdown wakes a recv blocked in another thread; close alone does not
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
    response.close()


def _read_limited(response: requests.Response, max_bytes: int) -> bytes:
    buffer = bytearray()
    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise InvalidInputError(
                f"Image too large: more than {max_bytes} bytes exceeds {max_bytes} byte limit"
            )
    return bytes(buffer)


def _read_before_deadline(response: requests.Response, max_bytes: int, deadline: float, timeout: float) -> bytes:
    """Read the body, aborting the connection once ``deadline`` passes."""
    expired = threading.Event()

    def expire() -> None:
        expired.set()
        _abort(response)

    timer = threading.Timer(max(0.0, deadline - time.monotonic()), expire)
    timer.daemon = True
    timer.start()
    try:
        body = _read_limited(response, max_bytes)
    except Exception as exc:
        if expired.is_set():
            raise ImageProcessingError(f"Request timed out after {timeout:g}s") from exc
        raise
    finally:
        timer.cancel()
    if expired.is_set():
        raise ImageProcessingError(f"Request timed out after {timeout:g}s")
    return body


def fetch_image_bytes(
    url: str,
    *,
    timeout: float = FETCH_TIMEOUT_S,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> bytes:
    """Download an image body with the SSRF guard, size limits and a hard deadline."""
    deadline = time.monotonic() + timeout
    current = url
    try:
        for _ in range(MAX_REDIRECTS + 1):
            validate_url(current)
            remaining = max(0.1, deadline - time.monotonic())
            with requests.get(current, stream=True, timeout=remaining, allow_redirects=False) as response:
                if response.is_redirect:
                    location = response.headers.get("location")
                    if not location:
                        raise ImageProcessingError("Redirect response without a Location header")
                    current = urljoin(current, location)
                    _log.debug("following redirect to %s", current)
                    continue
                if not 200 <= response.status_code < 300:
                    raise ImageProcessingError(
                        f"Failed to fetch image: HTTP {response.status_code} {response.reason or ''}".rstrip()
                    )
                content_type = response.headers.get("content-type")
                if content_type and not content_type.lower().startswith("image/"):
                    raise InvalidInputError(f"Invalid content type: expected image/*, got {content_type}")
                content_length = response.headers.get("content-length")
                if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                    raise InvalidInputError(
                        f"Image too large: {content_length} bytes exceeds {max_bytes} byte limit"
                    )
                return _read_before_deadline(response, max_bytes, deadline, timeout)
    except requests.Timeout as exc:
        raise ImageProcessingError(f"Request timed out after {timeout:g}s") from exc
    except requests.RequestException as exc:
        raise ImageProcessingError(f"Failed to fetch image: {exc}") from exc
    raise ImageProcessingError(f"Too many redirects (more than {MAX_REDIRECTS})")


def _decode(stream: io.BytesIO | Path, label: str) -> Image.Image:
    try:
        with Image.open(stream) as image:
            image.load()
            source_format = image.format
            decoded = ImageOps.exif_transpose(image).copy()
    except FileNotFoundError as exc:
        raise InvalidInputError(f"Image file not found: {label}") from exc
    except Image.DecompressionBombError as exc:
        raise InvalidInputError(f"Image is too large to decode: {exc}") from exc
    except (UnidentifiedImageError, SyntaxError) as exc:
        raise InvalidInputError("Invalid or unsupported image format") from exc
    except OSError as exc:
        raise InvalidInputError(f"Unable to decode image {label}: {exc}") from exc
    # copies drop the source format; metadata needs it
    decoded.format = source_format
    return decoded


def load_image(
    source: ImageSource,
    *,
    timeout: float = FETCH_TIMEOUT_S,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> Image.Image:
    """Resolve raw bytes, a local path or an http(s) URL into a decoded image."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        if not data:
            raise InvalidInputError("Image buffer is empty")
        return _decode(io.BytesIO(data), "<buffer>")
    if isinstance(source, str) and _is_url(source):
        data = fetch_image_bytes(source, timeout=timeout, max_bytes=max_bytes)
        return _decode(io.BytesIO(data), source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not str(source).strip() or not path.is_file():
            raise InvalidInputError(f"Image file not found: {source}")
        return _decode(path, str(path))
    raise InvalidInputError(f"Unsupported image source type: {type(source).__name__}")


def get_image_metadata(
    source: ImageSource,
    *,
    timeout: float = FETCH_TIMEOUT_S,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> ImageMetadata:
    image = load_image(source, timeout=timeout, max_bytes=max_bytes)
    width, height = image.size
    image_format = (image.format or "").lower()
    if width <= 0 or height <= 0 or not image_format:
        raise InvalidInputError("Unable to extract image metadata")
    return ImageMetadata(width=width, height=height, format=image_format)
