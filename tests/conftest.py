from __future__ import annotations

import pathlib
import shutil
import sys

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

NODE_AVAILABLE = shutil.which("node") is not None

skip_if_no_node = pytest.mark.skipif(
    not NODE_AVAILABLE, reason="node executable not found on PATH"
)

_GRADECORE_ENV = (
    "GRADECORE_BASE_PATH",
    "GRADECORE_STRICT_FILES",
    "GRADECORE_DISABLE_TEMPLATING",
    "GRADECORE_PYTHON",
    "GRADECORE_NODE",
    "GRADECORE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_gradecore_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _GRADECORE_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def repo_root() -> pathlib.Path:
    return REPO_ROOT
