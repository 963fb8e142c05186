import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def isolated_fitgd_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("FITGD_DATABASE_URL", "FITGD_DICE_SEED", "FITGD_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
