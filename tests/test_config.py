import pytest
from pydantic import ValidationError

from instructor.config import Settings

def test_Settings():
    s = Settings()
    assert s.MONITOR_INTERVAL == 5
    assert s.FLASH_INTERVAL == pytest.approx(0.4)
    assert s.NEEDS_HELP_THRESHOLD == 5
    assert s.LOG_CAPACITY == 1000
    assert s.DOWNLOAD_TIMEOUT == 30
    # override via env-like behavior (construct new instance)
    s2 = Settings(NEEDS_HELP_THRESHOLD=3, ASSET_DIR="/tmp/x")
    assert s2.NEEDS_HELP_THRESHOLD == 3
    assert s2.cascade_path.endswith("haarcascade_frontalface_default.xml")
    assert s2.cascade_path.startswith("/tmp/x")

def test_log_level_normalized():
    assert Settings(LOG_LEVEL="debug  # verbose").LOG_LEVEL == "DEBUG"
    assert Settings(LOG_LEVEL="chatty").LOG_LEVEL == "INFO"
    assert Settings(LOG_LEVEL="").LOG_LEVEL == "INFO"

def test_rejects_non_positive_intervals():
    with pytest.raises(ValidationError):
        Settings(MONITOR_INTERVAL=0)
    with pytest.raises(ValidationError):
        Settings(NEEDS_HELP_THRESHOLD=0)
