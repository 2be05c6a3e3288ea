from __future__ import annotations

import pytest

from spectraprint.config import (
    AnalysisConfig,
    EngineConfig,
    FingerprintConfig,
    config_from_dict,
    load_config,
    with_device,
)
from spectraprint.types import ComputingDevice
from tests.conftest import write_config


def test_defaults():
    cfg = EngineConfig()
    assert cfg.analysis.window_size == 1024
    assert cfg.analysis.hop_size == 512
    assert cfg.analysis.device == ComputingDevice.GPU
    assert cfg.sampler.sample_rate == 16000
    assert cfg.fingerprint.fft_size == 2048
    assert cfg.fingerprint.sample_scale == 65536.0
    assert cfg.fingerprint.band_edges_hz == (250.0, 520.0, 1450.0, 3500.0, 5500.0, 8000.0)
    assert cfg.rate_limit.interval_seconds == 1.0


def test_config_from_dict_partial_sections():
    cfg = config_from_dict({
        "analysis": {"window_size": 2048, "hop_size": 256, "device": "cpu"},
        "fingerprint": {"relative_threshold": 0.25, "neighbor_offsets": [-1, 1]},
    })
    assert cfg.analysis.window_size == 2048
    assert cfg.analysis.device == ComputingDevice.CPU
    assert cfg.fingerprint.relative_threshold == 0.25
    assert cfg.fingerprint.neighbor_offsets == (-1, 1)
    assert cfg.sampler.sample_count == 3


def test_device_code_in_config():
    assert config_from_dict({"analysis": {"device": 0}}).analysis.device == ComputingDevice.CPU


@pytest.mark.parametrize("doc", [
    {"analysis": {"window": 10}},
    {"unknown": {}},
    {"analysis": []},
    {"analysis": {"window_size": 512, "hop_size": 1024}},
    {"sampler": {"sample_count": 0}},
    {"fingerprint": {"band_edges_hz": [1, 2, 3]}},
    {"fingerprint": {"band_edges_hz": [1, 2, 3, 5, 4, 6]}},
    {"rate_limit": {"interval_seconds": -1}},
])
def test_invalid_documents(doc):
    with pytest.raises(ValueError):
        config_from_dict(doc)


def test_history_must_cover_offsets():
    with pytest.raises(ValueError):
        FingerprintConfig(history_size=100)


def test_load_config_from_file(tmp_path):
    path = write_config(tmp_path, {"sampler": {"sample_duration": 2.5}})
    cfg = load_config(str(path))
    assert cfg.sampler.sample_duration == 2.5


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_with_device():
    cfg = with_device(EngineConfig(analysis=AnalysisConfig(device="gpu")), "cpu")
    assert cfg.analysis.device == ComputingDevice.CPU
