"""Shared pytest fixtures for RuleSort tests."""
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
import yaml
from PIL import Image

from rulesort.infrastructure import logger as logger_module


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Create a source directory with test files."""
    source = temp_dir / "source"
    source.mkdir()

    (source / "notes.txt").write_text("Hello World")
    (source / "photo.jpg").write_bytes(b"\xff\xd8\xff\xe0 not really a jpeg")
    (source / "report.pdf").write_bytes(b"%PDF-1.4")
    (source / "IMG_0042.png").write_bytes(b"\x89PNG")

    (source / "subdir").mkdir()
    (source / "subdir" / "nested.txt").write_text("Nested content")

    return source


@pytest.fixture
def exif_jpeg(temp_dir: Path) -> Path:
    """A small JPEG carrying camera model and timestamp EXIF tags."""
    path = temp_dir / "camera" / "IMG_1001.jpg"
    path.parent.mkdir()
    exif = Image.Exif()
    exif[0x010F] = "Canon"  # Make
    exif[0x0110] = "Canon EOS 5D"  # Model
    exif[0x0132] = "2023:08:15 09:30:00"  # DateTime
    Image.new("RGB", (8, 8), "red").save(path, "JPEG", exif=exif)
    return path


@pytest.fixture
def out_dir(temp_dir: Path) -> Path:
    """Destination directory for move/copy actions."""
    out = temp_dir / "out"
    out.mkdir()
    return out


@pytest.fixture
def sample_rule() -> Dict[str, Any]:
    """Provide a sample rule definition."""
    return {
        "id": "text",
        "name": "Text files",
        "enabled": True,
        "priority": 1,
        "description": "Move text files",
        "when": {"extensions": ["txt"]},
        "then": [{"action": "move", "to": "/tmp/rulesort-out"}],
    }


@pytest.fixture
def rules_yaml(temp_dir: Path, sample_rule: Dict[str, Any]) -> Path:
    """Write a rule list file."""
    second = {
        "id": "pdfs",
        "name": "PDF documents",
        "when": {"mime_type": "application/pdf"},
        "then": [{"action": "skip"}],
    }
    path = temp_dir / "new_rules.yaml"
    path.write_text(yaml.safe_dump({"rules": [sample_rule, second]}, sort_keys=False))
    return path


@pytest.fixture(autouse=True)
def isolated_environment(temp_dir: Path, monkeypatch) -> None:
    """Keep configuration, rules and logs inside the test directory."""
    monkeypatch.setenv("RULESORT_DATA_DIR", str(temp_dir / "data"))
    monkeypatch.setenv("RULESORT_CONFIG_DIR", str(temp_dir / "config"))
    for key in list(os.environ):
        if key.startswith("RULESORT_") and key not in ("RULESORT_DATA_DIR", "RULESORT_CONFIG_DIR"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset the global loggers between tests."""
    monkeypatch.setattr(logger_module, "_global_logger", None)
    monkeypatch.setattr(logger_module, "_ops_logger", None)
    yield
