"""Click CLI for the Freematics frame decoder.

Entry point registered in ``pyproject.toml`` as ``freematics-decoder``.

Subcommands::

    freematics-decoder decode [FILE...]     # decode frames (one per line) to NDJSON
    freematics-decoder encrypt TEXT         # wrap a plaintext frame in the cipher envelope
    freematics-decoder checksum TEXT        # print TEXT*<checksum>
    freematics-decoder --validate-config    # validate config and exit
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Optional, TextIO

import click
import orjson

from freematics_decoder import __version__
from freematics_decoder.checksum import seal
from freematics_decoder.cipher import FrameDecodeError, encrypt_frame, load_key
from freematics_decoder.config import AppConfig, LogFileConfig, load_config
from freematics_decoder.decoder import FrameDecoder
from freematics_decoder.filter import RecordFilter
from freematics_decoder.output import FileSink, StdoutSink
from freematics_decoder.redactor import SecretRedactingFilter, collect_secret_values
from freematics_decoder.session import AckTransport, DeviceSessions
from freematics_decoder.transform import Transformer

logger = logging.getLogger("freematics_decoder")

DEFAULT_CONFIG = "/etc/freematics/config.json"

_installed_handlers: list[logging.Handler] = []


# ── structured JSON log formatter ───────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode()


def _setup_logging(
    level: str,
    secret_values: list[str] | None = None,
    log_file_config: Optional[LogFileConfig] = None,
) -> None:
    """Configure the root logger: JSON on stderr, optional file, redaction."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in _installed_handlers:
        root.removeHandler(handler)
    _installed_handlers.clear()

    redactor = SecretRedactingFilter(secret_values)

    stderr_handler = logging.StreamHandler(sys.stderr)
    _installed_handlers.append(stderr_handler)

    if log_file_config and log_file_config.enabled:
        Path(log_file_config.path).parent.mkdir(parents=True, exist_ok=True)
        _installed_handlers.append(RotatingFileHandler(
            filename=log_file_config.path,
            maxBytes=log_file_config.max_size_bytes,
            backupCount=log_file_config.backup_count,
        ))

    for handler in _installed_handlers:
        handler.setFormatter(_JsonFormatter())
        handler.addFilter(redactor)
        root.addHandler(handler)


def _load(config_path: Optional[str]) -> AppConfig:
    """Load the config file, or fall back to defaults when none is present."""
    path = config_path or os.environ.get("FREEMATICS_CONFIG", DEFAULT_CONFIG)
    if config_path is None and not Path(path).exists():
        cfg = AppConfig()
        key = os.environ.get("FREEMATICS_CIPHER_KEY")
        if key:
            cfg.cipher.key = key
        load_key(cfg.cipher.key)
        return cfg
    return load_config(path)


# ── main CLI group ──────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("-c", "--config", "config_path", default=None, help="Config file path.")
@click.option("--log-level", default=None,
              type=click.Choice(["debug", "info", "warn", "error"]),
              help="Log verbosity.")
@click.option("--validate-config", "validate_only", is_flag=True,
              help="Validate config and exit.")
@click.version_option(__version__)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    log_level: Optional[str],
    validate_only: bool,
) -> None:
    """Freematics frame decoder: device frames to NDJSON position records."""
    try:
        cfg = _load(config_path)
    except Exception as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(1) from exc

    effective_level = log_level or os.environ.get("FREEMATICS_LOG_LEVEL") or cfg.logging.level
    secret_values = collect_secret_values(asdict(cfg), cfg.logging.redact_patterns)
    _setup_logging(effective_level, secret_values, cfg.logging.file)

    if validate_only:
        click.echo("Configuration is valid.", err=True)
        raise SystemExit(0)

    ctx.obj = cfg
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── decode ──────────────────────────────────────────────────────────


class _SinkTransport(AckTransport):
    """Record acknowledgements in the output stream instead of a socket."""

    def __init__(self, sink: Any, xform: Transformer) -> None:
        self._sink = sink
        self._xform = xform
        self.count = 0

    def send(self, channel: Any, address: Any, text: str) -> None:
        self._sink.write(self._xform.transform_ack(address, text))
        self.count += 1


@main.command("decode")
@click.argument("inputs", nargs=-1,
                type=click.File("r", encoding="utf-8", errors="replace"))
@click.option("-o", "--output", "output_mode", type=click.Choice(["stdout", "file"]),
              default=None, help="Output mode (default from config).")
@click.option("-d", "--output-dir", default=None, help="Override output directory.")
@click.option("--auto-register/--no-auto-register", default=None,
              help="Accept frames from devices not listed in the config.")
@click.pass_obj
def decode_command(
    cfg: AppConfig,
    inputs: tuple[TextIO, ...],
    output_mode: Optional[str],
    output_dir: Optional[str],
    auto_register: Optional[bool],
) -> None:
    """Decode frames read from FILES (or stdin), one frame per line."""
    effective_output = output_mode or os.environ.get("FREEMATICS_OUTPUT") or cfg.output.mode
    if output_dir:
        cfg.output.file.output_dir = output_dir
    elif os.environ.get("FREEMATICS_OUTPUT_DIR"):
        cfg.output.file.output_dir = os.environ["FREEMATICS_OUTPUT_DIR"]
    if auto_register is not None:
        cfg.devices.auto_register = auto_register

    streams = inputs or (sys.stdin,)
    logger.info(
        "Starting freematics-decoder %s (instance=%s, output=%s)",
        __version__,
        cfg.instance_id,
        effective_output,
    )
    _run_pipeline(cfg, streams, effective_output)


def _run_pipeline(cfg: AppConfig, streams: Iterable[TextIO], output_mode: str) -> None:
    """Core loop: read → decode → remember fix → filter → transform → output."""
    if output_mode == "file":
        fc = cfg.output.file
        sink = FileSink(
            output_dir=fc.output_dir,
            prefix=fc.file_prefix,
            instance_id=cfg.instance_id,
            rotation_seconds=fc.rotation.interval_seconds,
            rotation_bytes=fc.rotation.max_size_bytes,
            flush_every_n=fc.flush_every_n,
        )
    else:
        sink = StdoutSink()

    xform = Transformer(instance_id=cfg.instance_id)
    sessions = DeviceSessions(cfg.devices.known_ids, auto_register=cfg.devices.auto_register)
    transport = _SinkTransport(sink, xform)
    decoder = FrameDecoder(
        sessions,
        transport,
        key=cfg.cipher.key_bytes,
        marker=cfg.cipher.marker,
    )
    filt = RecordFilter(cfg.filter)

    frames = positions = malformed = 0
    try:
        for stream in streams:
            name = getattr(stream, "name", "<stdin>")
            xform.source_name = name
            for lineno, line in enumerate(stream, start=1):
                frame = line.strip()
                if not frame:
                    continue
                frames += 1

                try:
                    records = decoder.decode(frame, channel=name, address=f"{name}:{lineno}")
                except FrameDecodeError as exc:
                    logger.warning("Undecodable frame at %s:%d: %s", name, lineno, exc)
                    sink.write(xform.transform_malformed(xform.malformed(frame, exc)))
                    malformed += 1
                    continue

                for record in records or ():
                    sessions.update_last_location(record)
                    if filt.apply(record) is None:
                        continue
                    sink.write(xform.transform(record))
                    positions += 1
    except BrokenPipeError:
        pass
    finally:
        sink.close()
        logger.info(
            "Decoded %d frames (%d positions, %d acks, %d malformed)",
            frames,
            positions,
            transport.count,
            malformed,
        )


# ── helpers for building test frames ────────────────────────────────


@main.command("encrypt")
@click.argument("text")
@click.option("--nonce", default=None, help="12-byte nonce as 24 hex digits (random if omitted).")
@click.pass_obj
def encrypt_command(cfg: AppConfig, text: str, nonce: Optional[str]) -> None:
    """Print TEXT wrapped in the encrypted frame envelope."""
    try:
        nonce_bytes = bytes.fromhex(nonce) if nonce else None
        frame = encrypt_frame(text, key=cfg.cipher.key_bytes, marker=cfg.cipher.marker,
                              nonce=nonce_bytes)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--nonce") from exc
    click.echo(frame)


@main.command("checksum")
@click.argument("text")
def checksum_command(text: str) -> None:
    """Print TEXT followed by ``*`` and its checksum."""
    click.echo(seal(text))
