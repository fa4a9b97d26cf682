"""palm-capture CLI.

Usage:
    palm-capture capture         Run a capture session on a local camera
    palm-capture serve           Start the HTTP/WebSocket server
    palm-capture check IMAGE     Report sharpness of still images
    palm-capture init-config     Write the default YAML config
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from palm_capture.config import SessionConfig, load_config, save_config
from palm_capture.errors import ConfigError, InitializationError

app = typer.Typer(
    name="palm-capture",
    help="Hand pose capture with gesture checklist and blur rejection.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def _load(config_path: Optional[str]) -> SessionConfig:
    if config_path is None:
        return SessionConfig()
    try:
        return load_config(config_path)
    except (OSError, ConfigError) as e:
        typer.echo(f"❌ Invalid config {config_path}: {e}", err=True)
        raise typer.Exit(2)


@app.command()
def capture(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera device index (overrides config)"),
    facing: Optional[str] = typer.Option(None, help="Camera facing mode: front or back"),
    output: Optional[str] = typer.Option(None, "-o", help="Directory for captured images"),
    max_frames: Optional[int] = typer.Option(None, help="Stop after this many camera reads"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Run a capture session on a local camera until every gesture is captured."""
    _setup_logging(log_level)
    from palm_capture.camera import CameraSource
    from palm_capture.detector import HandDetector
    from palm_capture.gestures import FacingMode
    from palm_capture.loop import CaptureLoop
    from palm_capture.metrics import MetricsCollector
    from palm_capture.session import CaptureController, CaptureEvent
    from palm_capture.store import CaptureStore

    cfg = _load(config)
    if camera is not None:
        cfg.camera_index = camera
    if facing is not None:
        try:
            cfg.facing_mode = FacingMode(facing)
        except ValueError:
            typer.echo(f"❌ Unknown facing mode: {facing}", err=True)
            raise typer.Exit(2)
    if output is not None:
        cfg.output_dir = output

    controller = CaptureController(cfg)
    store = CaptureStore(cfg.output_dir, cfg.max_width, cfg.max_height, cfg.jpeg_quality, cfg.enhance)
    store.attach(controller)

    def on_capture(event: CaptureEvent):
        checklist = controller.state.checklist
        typer.echo(
            f"📸 {event.label.value} captured "
            f"({checklist.captured_count}/{len(checklist)}, sharpness {event.variance:.0f})"
        )
        pending = checklist.next_pending
        if pending is not None:
            typer.echo(f"   Next: show your {pending.value.lower()} to the camera")

    controller.on_capture(on_capture)

    source = CameraSource(cfg.camera_index, cfg.camera_width, cfg.camera_height)
    try:
        source.open()
        detector = HandDetector(max_hands=2)
    except InitializationError as e:
        source.release()
        controller.fail(str(e))
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    metrics = MetricsCollector()
    loop = CaptureLoop(source, detector, controller, metrics=metrics)

    typer.echo(f"🎥 Camera {cfg.camera_index} ({cfg.facing_mode.value}-facing)")
    typer.echo(f"   Show your {controller.state.checklist.next_pending.value.lower()} to the camera")
    typer.echo("   Press Ctrl+C to stop")

    try:
        status = loop.run(max_frames=max_frames)
    except KeyboardInterrupt:
        loop.stop("interrupted")
        loop.close()
        status = controller.state.status
    except InitializationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    checklist = controller.state.checklist
    typer.echo(f"\n{status.value}: {checklist.captured_count}/{len(checklist)} captured")
    for entry in checklist:
        mark = "✅" if entry.captured else "⬜"
        typer.echo(f"   {mark} {entry.label.value}" + (f"  {entry.path}" if entry.path else ""))
    rejections = metrics.rejection_counts
    if rejections:
        typer.echo(f"   Rejected: {', '.join(f'{k}={v}' for k, v in sorted(rejections.items()))}")

    if not checklist.is_complete:
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    no_camera: bool = typer.Option(False, "--no-camera", help="Serve the API without starting the camera loop"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the HTTP/WebSocket capture server."""
    _setup_logging(log_level)
    import uvicorn
    from palm_capture.server import app as fastapi_app, state

    cfg = _load(config)
    state.configure(cfg)
    state.autostart = not no_camera

    typer.echo(f"🚀 Starting palm-capture server on {host}:{port}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


@app.command()
def check(
    images: list[Path] = typer.Argument(..., help="Image files to assess"),
    threshold: Optional[float] = typer.Option(None, help="Blur variance threshold"),
    stride: Optional[int] = typer.Option(None, help="Pixel sampling stride"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Report whether still images are sharp enough to accept."""
    from palm_capture.quality import FrameQualityGate
    from palm_capture.store import decode_image

    cfg = _load(config)
    gate = FrameQualityGate(
        threshold=cfg.blur_threshold if threshold is None else threshold,
        stride=cfg.blur_stride if stride is None else stride,
    )

    rejected = 0
    for path in images:
        if not path.is_file():
            typer.echo(f"❌ {path}: not found", err=True)
            rejected += 1
            continue
        image = decode_image(path.read_bytes())
        if image is None:
            typer.echo(f"❌ {path}: not a readable image", err=True)
            rejected += 1
            continue

        verdict = gate.assess(image)
        mark = "✅ sharp " if verdict.acceptable else "❌ blurry"
        typer.echo(f"{mark}  {path}  (variance {verdict.variance:.1f}, threshold {gate.threshold:g})")
        if not verdict.acceptable:
            rejected += 1

    if rejected:
        raise typer.Exit(1)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("palm_capture.yml"), help="Where to write the config"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
):
    """Write the default session config as YAML."""
    if path.exists() and not force:
        typer.echo(f"❌ {path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)
    save_config(SessionConfig(), path)
    typer.echo(f"💾 Default config written to {path}")


def main():
    app()


if __name__ == "__main__":
    main()
