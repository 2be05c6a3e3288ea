"""Descriptor and signature reports serialised as canonical JSON."""
from __future__ import annotations
import base64
import hashlib
import json
import math
from typing import Iterable

from spectraprint.fingerprint.signature import Signature
from spectraprint.types import AnalysisResult
from spectraprint.version import __version__

SCHEMA_VERSION = "1.0"
SIGNATURE_FORMATS = ("raw", "shazam")


def canonical_dumps(obj) -> str:
    """Sorted keys, no insignificant whitespace."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def quantize(x: float | None, step: float) -> float | None:
    """Round half away from zero to a multiple of step so hashes stay stable."""
    if x is None or math.isnan(x) or math.isinf(x):
        return x
    inv = 1.0 / step
    y = x * inv
    yq = math.floor(y + 0.5) if y >= 0 else -math.floor(-y + 0.5)
    return yq / inv


def _report_hash(report: dict) -> str:
    body = dict(report)
    body["integrity"] = {"report_hash_sha256": ""}
    return hashlib.sha256(canonical_dumps(body).encode("utf-8")).hexdigest()


def _finalise(report: dict) -> dict:
    report["integrity"] = {"report_hash_sha256": _report_hash(report)}
    return report


def engine_meta() -> dict:
    return {"name": "spectraprint", "version": __version__}


def build_analysis_report(result: AnalysisResult, *, input_meta: dict, device: str) -> dict:
    """
    Build a descriptor report for one analysed file.

    Args:
        result: Output of analyze_audio
        input_meta: path, file hashes and decode details
        device: Backend the analysis ran on

    Returns:
        Report dict with quantised values and an integrity hash
    """
    desc = result.description
    f = result.features
    norm = result.normalize()
    report = {
        "schema_version": SCHEMA_VERSION,
        "kind": "descriptor",
        "engine": engine_meta(),
        "input": input_meta,
        "analysis": {
            "window_size": result.parameters.window_size,
            "hop_size": result.parameters.hop_size,
            "device": device,
        },
        "stat": {
            "sample_rate": result.stat.sample_rate,
            "duration_s": quantize(float(result.stat.duration), 1e-4),
            "total_samples": result.stat.total_samples,
        },
        "time_domain": {
            "rms": quantize(float(desc.rms), 1e-6),
            "zcr": int(desc.zcr),
            "energy": quantize(float(desc.energy), 1e-4),
        },
        "spectral": {
            "centroid": quantize(f.centroid, 1e-4),
            "flatness": quantize(f.flatness, 1e-6),
            "flux": quantize(f.flux, 1e-4),
            "slope": quantize(f.slope, 1e-9),
            "rolloff_hz": quantize(f.rolloff, 1e-3),
            "spread": quantize(f.spread, 1e-4),
            "skewness": quantize(f.skewness, 1e-4),
            "kurtosis": quantize(f.kurtosis, 1e-4),
        },
        "normalized": {
            "zcr": quantize(norm.zcr, 1e-6),
            "energy": quantize(norm.energy, 1e-6),
            "centroid": quantize(norm.centroid, 1e-6),
            "rolloff": quantize(norm.rolloff, 1e-6),
            "spread": quantize(norm.spread, 1e-6),
        },
    }
    return _finalise(report)


def encode_signature(signature: Signature, fmt: str = "raw") -> bytes:
    if fmt == "raw":
        return signature.encode()
    if fmt == "shazam":
        return signature.encode_shazam()
    raise ValueError(f"Unknown signature format: {fmt}")


def build_fingerprint_report(
    signatures: Iterable[Signature],
    *,
    input_meta: dict,
    fmt: str = "raw"
) -> dict:
    """Build a report listing one base64 signature per sampled window."""
    windows = []
    for i, sig in enumerate(signatures):
        payload = encode_signature(sig, fmt)
        windows.append({
            "index": i,
            "sample_rate": sig.sample_rate,
            "num_samples": sig.num_samples,
            "peaks_per_band": [len(b) for b in sig.peaks_by_band],
            "signature_b64": base64.b64encode(payload).decode("ascii"),
        })
    report = {
        "schema_version": SCHEMA_VERSION,
        "kind": "fingerprint",
        "engine": engine_meta(),
        "input": input_meta,
        "format": fmt,
        "windows": windows,
    }
    return _finalise(report)


def verify_report(report: dict) -> bool:
    """True when the stored integrity hash matches the report body."""
    stored = report.get("integrity", {}).get("report_hash_sha256")
    return bool(stored) and stored == _report_hash(report)
