from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

_SETTINGS_ENV = (
    "ESM_INFRA_STACK_NAME",
    "ESM_INFRA_PROJECT",
    "ESM_INFRA_OWNER",
    "ESM_INFRA_CI_REPO",
    "ESM_INFRA_SITE_REPO",
    "ESM_INFRA_BRANCH",
    "CDK_DEFAULT_ACCOUNT",
    "CDK_DEFAULT_REGION",
)


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch: pytest.MonkeyPatch):
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
