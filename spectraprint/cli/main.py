"""SpectraPrint CLI - audio descriptors and acoustic fingerprints."""
from __future__ import annotations
import argparse
import json
import logging
import os
import signal
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable

from spectraprint.analysis.engine import analyze_audio
from spectraprint.config import EngineConfig, load_config, with_device
from spectraprint.errors import AudioDecodeError, DeviceBackendError, SignatureFormatError
from spectraprint.fingerprint.spectrogram import signatures_for_file
from spectraprint.io.audio import SUPPORTED_AUDIO_EXTS
from spectraprint.logging_config import configure_logging
from spectraprint.reporting.descriptor import (
    SIGNATURE_FORMATS,
    build_analysis_report,
    build_fingerprint_report,
)
from spectraprint.utils.cancel import CancelToken
from spectraprint.utils.hashing import crc_hex, media_crc32_file, sha256_hex_file
from spectraprint.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_DECODE_ERROR = 3
EXIT_CONFIG_ERROR = 4
EXIT_INTERNAL_ERROR = 5
EXIT_CANCELLED = 6


class _ConfigError(Exception):
    pass


def _device_selector(value: str) -> int | str:
    """Integer codes arrive as strings from argparse."""
    text = value.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    return text


def _load_engine_config(path: str | None, device: str | None = None) -> EngineConfig:
    """Read --config and apply --device on top."""
    try:
        config = load_config(path) if path else EngineConfig()
    except (OSError, ValueError, TypeError) as exc:
        raise _ConfigError(str(exc)) from exc
    if device is not None:
        config = with_device(config, _device_selector(device))
    return config


def _install_cancel_handler(token: CancelToken):
    """Turn Ctrl-C into a cooperative cancellation; returns the previous handler."""
    def _handler(signum, frame):
        logger.warning("Interrupt received, cancelling")
        token.cancel()
    try:
        return signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # not the main thread
        return None


def _restore_handler(previous) -> None:
    if previous is not None:
        signal.signal(signal.SIGINT, previous)


def _iter_audio_files(folder: Path, recursive: bool) -> list[Path]:
    """Collect supported audio files from a folder."""
    if not folder.exists():
        raise ValueError(f"Folder not found: {folder}")
    files: Iterable[Path]
    files = folder.rglob("*") if recursive else folder.glob("*")
    return sorted(
        p for p in files
        if p.is_file() and p.suffix.lower() in SUPPORTED_AUDIO_EXTS
    )


def _output_path(out_dir: Path, audio_path: Path) -> Path:
    return out_dir / (audio_path.stem + ".descriptor.json")


def _build_input_meta(audio_path: str) -> dict:
    meta = {"path": str(Path(audio_path).resolve())}
    try:
        meta["file_hash_sha256"] = sha256_hex_file(audio_path)
        meta["media_crc32"] = crc_hex(media_crc32_file(audio_path))
    except OSError:
        meta["file_hash_sha256"] = "0" * 64
        meta["media_crc32"] = crc_hex(0)
    return meta


def _write_output(report: dict, out: str | None) -> None:
    output_json = json.dumps(report, indent=2)
    if out:
        Path(out).write_text(output_json, encoding="utf-8")
        print(f"Report written to: {out}", file=sys.stderr)
    else:
        print(output_json)


def _analyze_file(audio_path: str, config: EngineConfig, token: CancelToken | None = None):
    result = analyze_audio(audio_path, config.analysis, cancel_token=token)
    if result is None:
        return None
    return build_analysis_report(
        result,
        input_meta=_build_input_meta(audio_path),
        device=config.analysis.device.value,
    )


def _run_guarded(fn) -> int:
    """Map the package's exceptions onto exit codes."""
    try:
        return fn()
    except _ConfigError as e:
        print(f"Error: Invalid config - {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except AudioDecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except (DeviceBackendError, SignatureFormatError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR


def cmd_analyze(args) -> int:
    """Handle analyze command."""
    def run() -> int:
        config = _load_engine_config(args.config, args.device)
        token = CancelToken()
        previous = _install_cancel_handler(token)
        try:
            report = _analyze_file(args.audio_path, config, token)
        finally:
            _restore_handler(previous)
        if report is None:
            print("Cancelled.", file=sys.stderr)
            return EXIT_CANCELLED
        _write_output(report, args.out)
        return EXIT_OK
    return _run_guarded(run)


def cmd_fingerprint(args) -> int:
    """Handle fingerprint command."""
    def run() -> int:
        config = _load_engine_config(args.config)
        token = CancelToken()
        previous = _install_cancel_handler(token)
        try:
            signatures = signatures_for_file(
                args.audio_path,
                sampler_config=config.sampler,
                config=config.fingerprint,
                cancel_token=token,
            )
        finally:
            _restore_handler(previous)
        if token.cancelled:
            print("Cancelled.", file=sys.stderr)
            return EXIT_CANCELLED
        report = build_fingerprint_report(
            signatures,
            input_meta=_build_input_meta(args.audio_path),
            fmt=args.format,
        )
        _write_output(report, args.out)
        return EXIT_OK
    return _run_guarded(run)


def cmd_checksum(args) -> int:
    """Handle checksum command."""
    failures = 0
    for path in args.files:
        try:
            print(f"{crc_hex(media_crc32_file(path))}  {path}")
        except OSError as e:
            failures += 1
            print(f"[ERROR] {path}: {e}", file=sys.stderr)
    return EXIT_DECODE_ERROR if failures else EXIT_OK


def _batch_worker(
    args: tuple[str, str | None, str | None, str | None]
) -> tuple[str, str | None, str | None]:
    """Worker for batch analysis. Returns (path, output path, error)."""
    audio_path, config_path, device, out_dir = args
    try:
        config = _load_engine_config(config_path, device)
        report = _analyze_file(audio_path, config)
        if report is None:
            return (audio_path, None, "cancelled")
        out_path = None
        if out_dir:
            out_path = _output_path(Path(out_dir), Path(audio_path))
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        return (audio_path, str(out_path) if out_path else None, None)
    except Exception as exc:
        return (audio_path, None, str(exc))


def _report_batch_result(audio_path: str, out_path: str | None, err: str | None) -> int:
    if err:
        print(f"[ERROR] {audio_path}: {err}", file=sys.stderr)
        return 1
    print(f"[OK] {audio_path}" + (f" -> {out_path}" if out_path else ""))
    return 0


def cmd_batch(args) -> int:
    """Handle batch command."""
    try:
        audio_paths = _iter_audio_files(Path(args.folder), args.recursive)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS
    if not audio_paths:
        print("Error: No input files found.", file=sys.stderr)
        return EXIT_BAD_ARGS
    try:
        _load_engine_config(args.config, args.device)
    except _ConfigError as e:
        print(f"Error: Invalid config - {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    out_dir = str(Path(args.out_dir)) if args.out_dir else None
    jobs = [(str(p), args.config, args.device, out_dir) for p in audio_paths]
    max_workers = min(max(1, int(args.workers)), len(jobs))
    failures = 0
    try:
        if max_workers == 1:
            for job in jobs:
                failures += _report_batch_result(*_batch_worker(job))
        else:
            with ProcessPoolExecutor(max_workers=max_workers) as ex:
                futures = [ex.submit(_batch_worker, job) for job in jobs]
                for fut in as_completed(futures):
                    failures += _report_batch_result(*fut.result())
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    if failures:
        return EXIT_INTERNAL_ERROR
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spectraprint",
        description="SpectraPrint - audio descriptors and acoustic fingerprints"
    )
    parser.add_argument(
        "--version", action="version",
        version=f"spectraprint {__version__}"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: SPECTRAPRINT_LOG_LEVEL or WARNING)"
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Compute spectral descriptors of an audio file"
    )
    analyze_parser.add_argument("audio_path", help="Path to audio file")
    analyze_parser.add_argument("--config", "-c", help="Engine config JSON")
    analyze_parser.add_argument(
        "--device", "-d",
        help="FFT device: cpu, gpu or an integer code (default from config)"
    )
    analyze_parser.add_argument("--out", "-o", help="Output path for report JSON")
    analyze_parser.set_defaults(func=cmd_analyze)

    fp_parser = subparsers.add_parser(
        "fingerprint",
        help="Build peak signatures for sampled windows of an audio file"
    )
    fp_parser.add_argument("audio_path", help="Path to audio file")
    fp_parser.add_argument("--config", "-c", help="Engine config JSON")
    fp_parser.add_argument("--out", "-o", help="Output path for report JSON")
    fp_parser.add_argument(
        "--format", "-f",
        choices=list(SIGNATURE_FORMATS),
        default="raw",
        help="Signature encoding (default: raw)"
    )
    fp_parser.set_defaults(func=cmd_fingerprint)

    checksum_parser = subparsers.add_parser(
        "checksum",
        help="Print the media CRC key of files"
    )
    checksum_parser.add_argument("files", nargs="+", help="Files to hash")
    checksum_parser.set_defaults(func=cmd_checksum)

    batch_parser = subparsers.add_parser(
        "batch",
        help="Analyze every audio file in a folder"
    )
    batch_parser.add_argument("--folder", required=True, help="Folder containing audio files")
    batch_parser.add_argument("--config", "-c", help="Engine config JSON")
    batch_parser.add_argument("--device", "-d", help="FFT device override")
    batch_parser.add_argument("--out-dir", help="Output directory for descriptor JSONs")
    batch_parser.add_argument(
        "--recursive",
        action="store_true",
        help="Recurse into subfolders"
    )
    batch_parser.add_argument(
        "--workers",
        type=int,
        default=max(1, (os.cpu_count() or 2) - 1),
        help="Parallel workers (default: cpu_count-1)"
    )
    batch_parser.set_defaults(func=cmd_batch)
    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        configure_logging(args.log_level, json_format=args.log_json)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_BAD_ARGS)

    if hasattr(args, "func"):
        sys.exit(args.func(args))
    else:
        parser.print_help()
        sys.exit(EXIT_BAD_ARGS)


if __name__ == "__main__":
    main()
