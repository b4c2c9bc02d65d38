import logging
from pathlib import Path
import pytest

from storyquery.expression import ExpressionEngine, reset_default_engine


@pytest.fixture(scope="session")
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]

@pytest.fixture(scope="session")
def cfg_path(project_root: Path) -> Path:
    return project_root / "config" / "config.toml"

@pytest.fixture
def engine() -> ExpressionEngine:
    # fresh cache and bindings per test
    return ExpressionEngine()

@pytest.fixture(autouse=True)
def _fresh_default_engine():
    reset_default_engine()
    yield
    reset_default_engine()

@pytest.fixture
def cards():
    return [
        {"title": "Iron Key", "type": "item", "name": "Key", "level": 3, "tags": ["metal", "quest"]},
        {"title": "Old Sword", "type": "item", "name": "Sword", "level": 10, "stats": {"atk": 7}},
        {"title": "Mira", "type": "character", "name": "Mira Vale", "level": 5, "desc": "A wandering bard"},
        {"title": "Harbor", "type": "location", "level": None},
    ]

@pytest.fixture
def write_toml(tmp_path: Path):
    def _write(body: str, name: str = "config.toml", encoding: str = "utf-8") -> Path:
        p = tmp_path / name
        p.write_text(body, encoding=encoding)
        return p
    return _write

@pytest.fixture
def expr_log():
    """Records emitted on the storyquery.expression logger during the test."""
    class _Cap(logging.Handler):
        def __init__(self):
            super().__init__(level=logging.DEBUG)
            self.records = []

        def emit(self, record: logging.LogRecord) -> None:
            self.records.append(record)

    logger = logging.getLogger("storyquery.expression")
    cap = _Cap()
    old_level = logger.level
    logger.addHandler(cap)
    logger.setLevel(logging.DEBUG)
    yield cap.records
    logger.removeHandler(cap)
    logger.setLevel(old_level)
