import sys
from pathlib import Path

import pytest

# Ensure `src` is on sys.path for tests run from the repository root
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture
def make_executable(tmp_path):
    """Write a shell script into tmp_path and mark it executable."""
    def _make(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(body)
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def askpass(make_executable):
    """An askpass stand-in that answers with a fixed password."""
    return make_executable('askpass', '#!/bin/sh\necho hunter2\n')
