"""Tests for hardware probing."""

import psutil
import pytest
from structlog.testing import capture_logs

from sysdiag import hardware
from sysdiag.hardware import PsutilHardwareProbe, available_memory_bytes
from sysdiag.models import HardwareFacts


def _raise(*args, **kwargs):
    raise PermissionError("sandboxed")


def test_probe_returns_hardware_facts():
    facts = PsutilHardwareProbe().probe()

    assert isinstance(facts, HardwareFacts)
    assert facts.total_memory_bytes > 0
    assert facts.os_caption != ""
    assert facts.cpu_cores >= 0
    assert facts.gpu_vram_bytes >= 0


def test_probe_sandboxed_leaves_sentinels(monkeypatch):
    """Every facet the OS refuses to report keeps its sentinel; probe() still returns."""
    monkeypatch.setattr(psutil, "cpu_count", _raise)
    monkeypatch.setattr(psutil, "virtual_memory", _raise)
    monkeypatch.setattr(hardware.shutil, "which", lambda name: None)
    monkeypatch.setattr(hardware.sys, "platform", "sandbox")
    monkeypatch.setattr(hardware.platform, "processor", lambda: "")

    facts = PsutilHardwareProbe().probe()

    assert facts.cpu_name == ""
    assert facts.cpu_cores == 0
    assert facts.total_memory_bytes == 0
    assert facts.gpu_name == ""
    assert facts.gpu_vram_bytes == 0


def test_cpu_cores_none_becomes_zero(monkeypatch):
    monkeypatch.setattr(psutil, "cpu_count", lambda logical=True: None)

    assert PsutilHardwareProbe().probe().cpu_cores == 0


def test_gpu_from_nvidia_smi(monkeypatch):
    monkeypatch.setattr(hardware.shutil, "which", lambda name: "/usr/bin/nvidia-smi")
    monkeypatch.setattr(hardware, "_run", lambda command: "NVIDIA GeForce RTX 3080, 10240")

    facts = PsutilHardwareProbe().probe()

    assert facts.gpu_name == "NVIDIA GeForce RTX 3080"
    assert facts.gpu_vram_bytes == 10240 * 1024 * 1024


@pytest.mark.parametrize(
    ("output", "expected"),
    [
        ("Tesla T4, 15360\nTesla T4, 15360", ("Tesla T4", 15360 * 1024 * 1024)),
        ("Some, GPU, [N/A]", ("Some, GPU", 0)),
    ],
)
def test_parse_nvidia_smi(output, expected):
    assert PsutilHardwareProbe._parse_nvidia_smi(output) == expected


def test_parse_wmic_gpu():
    output = "AdapterRAM  Name\n4293918720  NVIDIA GeForce GTX 1050 Ti\n"

    assert PsutilHardwareProbe._parse_wmic_gpu(output) == (
        "NVIDIA GeForce GTX 1050 Ti",
        4293918720,
    )


def test_parse_wmic_gpu_without_rows():
    assert PsutilHardwareProbe._parse_wmic_gpu("AdapterRAM  Name") == ("", 0)


def test_run_missing_command_returns_empty():
    assert hardware._run(["sysdiag-definitely-not-a-command"]) == ""


def test_available_memory_bytes():
    assert available_memory_bytes() > 0


def test_available_memory_bytes_unavailable(monkeypatch):
    monkeypatch.setattr(psutil, "virtual_memory", _raise)

    assert available_memory_bytes() == 0


def test_missing_gpu_warns_once_per_probe(monkeypatch):
    monkeypatch.setattr(hardware.shutil, "which", lambda name: None)
    monkeypatch.setattr(hardware.sys, "platform", "sandbox")
    monkeypatch.setattr(hardware.platform, "processor", lambda: "")
    probe = PsutilHardwareProbe()

    with capture_logs() as logs:
        for _ in range(3):
            probe.probe()

    gpu = [entry["log_level"] for entry in logs if entry["event"] == "gpu_unavailable"]
    cpu = [entry["log_level"] for entry in logs if entry["event"] == "cpu_name_unavailable"]
    assert gpu == ["warning", "debug", "debug"]
    assert cpu == ["warning", "debug", "debug"]
