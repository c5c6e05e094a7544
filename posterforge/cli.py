from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

import typer
import yaml

from posterforge.compose import build_composer
from posterforge.config import load_config, write_default_config
from posterforge.constants import OUTPUT_FORMATS
from posterforge.decoders.image_loader import fetch_image_bytes
from posterforge.errors import PosterError
from posterforge.models import OutputOptions, ResizeOptions
from posterforge.render.typography import FontRegistry
from posterforge.template_loader import read_template_file
from posterforge.template_schema import validate_template

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Tournament poster renderer.")
LOGGER = logging.getLogger("posterforge")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(message: str) -> typer.Exit:
    typer.secho(message, err=True, fg=typer.colors.RED)
    return typer.Exit(1)


def _parse_data(pairs: list[str], data_file: Path | None) -> dict[str, str]:
    data: dict[str, str] = {}
    if data_file is not None:
        loaded = yaml.safe_load(data_file.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"data file is not a mapping: {data_file}")
        data.update({str(key): str(value) for key, value in loaded.items() if value is not None})
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"--data expects KEY=VALUE, got: {pair!r}")
        data[key.strip()] = value
    return data


def _read_photo(photo: str, cfg: dict[str, Any]) -> bytes:
    if "://" in photo:
        return fetch_image_bytes(
            photo,
            timeout=float(cfg["fetch_timeout"]),
            max_bytes=int(cfg["max_image_bytes"]),
        )
    path = Path(photo)
    if not path.is_file():
        raise FileNotFoundError(f"photo not found: {path}")
    return path.read_bytes()


@app.command()
def render(
    template_id: str = typer.Argument(..., help="Registered template id, e.g. classic."),
    photo: str = typer.Argument(..., help="Athlete photo: a file path or an http(s) URL."),
    data: list[str] | None = typer.Option(None, "--data", "-d", help="Text field value as KEY=VALUE (repeatable)."),
    data_file: Path | None = typer.Option(
        None, "--data-file", exists=True, dir_okay=False, resolve_path=True, help="YAML/JSON mapping of field values."
    ),
    out: Path | None = typer.Option(None, "--out", help="Output file (default: <template>.<ext> in the current directory)."),
    output_format: str | None = typer.Option(None, "--format", help="Output format: png|jpeg"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100),
    width: int | None = typer.Option(None, "--width", min=1, help="Resize output width."),
    height: int | None = typer.Option(None, "--height", min=1, help="Resize output height."),
    fit: str = typer.Option("cover", "--fit", help="Resize fit: cover|contain|fill"),
    strict_font: bool | None = typer.Option(None, "--strict-font/--no-strict-font"),
    config: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False, resolve_path=True),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Render a poster from a template, a photo and field values."""
    try:
        cfg = load_config(config)
    except PosterError as exc:
        raise _fail(str(exc))
    _setup_logging(log_level or str(cfg.get("log_level") or "info"))

    fmt = (output_format or str(cfg.get("output_format") or "png")).lower()
    if fmt not in OUTPUT_FORMATS:
        raise _fail(f"output format must be png or jpeg, got: {fmt!r}")
    if quality is None and fmt != "png":
        quality = int(cfg.get("quality") or 0) or None
    resize = ResizeOptions(width=width, height=height, fit=fit) if (width or height) else None
    options = OutputOptions(format=fmt, quality=quality, resize=resize)

    try:
        values = _parse_data(data or [], data_file)
        photo_bytes = _read_photo(photo, cfg)
        composer = build_composer(cfg)
        started = time.perf_counter()
        result = composer.compose_poster(
            template_id,
            photo_bytes,
            values,
            options,
            on_progress=lambda stage, percent: LOGGER.debug("progress %3d%% %s", percent, stage),
            strict_font=strict_font,
        )
    except PosterError as exc:
        detail = f" ({', '.join(exc.fields)})" if getattr(exc, "fields", None) else ""
        raise _fail(f"[{exc.code}] {exc.message}{detail}")
    except (OSError, ValueError) as exc:
        raise _fail(str(exc))

    ext = "jpg" if OUTPUT_FORMATS[fmt] == "JPEG" else "png"
    target = out or Path.cwd() / f"{template_id}.{ext}"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(result.image_bytes)
    elapsed = time.perf_counter() - started
    LOGGER.info("rendered %s in %.2fs", target, elapsed)
    typer.echo(json.dumps({"output": str(target), **result.metadata.to_dict()}, ensure_ascii=False))


@app.command("templates")
def list_templates_command(
    config: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False, resolve_path=True),
) -> None:
    """List registered templates as JSON."""
    try:
        composer = build_composer(load_config(config))
    except PosterError as exc:
        raise _fail(f"[{exc.code}] {exc.message}")
    typer.echo(json.dumps(composer.templates.list_templates(), ensure_ascii=False, indent=2))


@app.command("validate")
def validate_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True),
) -> None:
    """Validate a YAML/JSON template file and print every issue."""
    try:
        raw = read_template_file(file)
    except PosterError as exc:
        raise _fail(exc.message)
    result = validate_template(raw)
    if result.valid:
        typer.echo(f"OK: {result.template.id}")
        return
    for issue in result.issues:
        typer.secho(f"  {issue}", fg=typer.colors.RED)
    raise typer.Exit(1)


@app.command("fonts")
def fonts_command() -> None:
    """Report bundled font status as JSON."""
    registry = FontRegistry()
    report = registry.init_bundled_fonts()
    payload = {
        "default": registry.get_default_font(),
        "bundled": registry.list_bundled_fonts(),
        **report.to_dict(),
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
    path: Path | None = typer.Option(None, "--path", help="Write to this file instead of the user config dir."),
) -> None:
    target = write_default_config(path, force=force)
    typer.echo(f"Config initialized: {target}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
