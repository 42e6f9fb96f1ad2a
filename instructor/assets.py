"""
Startup asset provisioning: cascade definition and ONNX model files.
"""
from __future__ import annotations
import logging
import os
import shutil

import cv2
import requests

from instructor.config import Settings
from instructor.errors import StartupResourceError

logger = logging.getLogger(__name__)


def _bundled_cascade(filename: str) -> str | None:
    """Path of the cascade shipped inside the OpenCV wheel, if present."""
    base = getattr(getattr(cv2, "data", None), "haarcascades", None)
    if not base:
        return None
    path = os.path.join(base, filename)
    return path if os.path.isfile(path) and os.path.getsize(path) > 0 else None


def ensure_cascade_asset(settings: Settings) -> str:
    """
    Make sure the face cascade XML exists locally and is non-empty.

    Resolution order: existing file in ASSET_DIR, the copy bundled with OpenCV,
    then a one-time download from CASCADE_URL (DOWNLOAD_TIMEOUT seconds).

    Returns:
        str: path to the cascade file.

    Raises:
        StartupResourceError: download failed or the file is empty.
    """
    path = settings.cascade_path
    if not os.path.exists(path):
        os.makedirs(settings.ASSET_DIR, exist_ok=True)
        bundled = _bundled_cascade(settings.CASCADE_FILE)
        if bundled:
            logger.debug(f"[assets] copying bundled cascade {bundled} -> {path}")
            shutil.copyfile(bundled, path)
        else:
            logger.info(f"[assets] downloading cascade from {settings.CASCADE_URL}")
            try:
                r = requests.get(settings.CASCADE_URL, timeout=settings.DOWNLOAD_TIMEOUT)
                r.raise_for_status()
            except requests.RequestException as e:
                logger.error(f"[assets] cascade download failed: {e}")
                raise StartupResourceError(
                    f"Failed to download face cascade from {settings.CASCADE_URL}. "
                    f"Download it manually and place it at {path}"
                ) from e
            with open(path, "wb") as f:
                f.write(r.content)

    if not os.path.isfile(path):
        raise StartupResourceError(f"Cascade file not found at: {path}")
    if os.path.getsize(path) == 0:
        os.remove(path)
        raise StartupResourceError(f"Cascade file was empty and has been deleted: {path}. Please try again.")
    return path


def ensure_model_files(settings: Settings) -> tuple[str, str]:
    """
    Check that both emotion model files exist.

    Raises:
        StartupResourceError: either file is missing.
    """
    for label, path in (("Primary (CNN)", settings.PRIMARY_MODEL_PATH),
                        ("Secondary (FerPlus)", settings.SECONDARY_MODEL_PATH)):
        if not os.path.isfile(path):
            logger.error(f"[assets] {label} model missing: {path}")
            raise StartupResourceError(f"{label} model not found at: {path}")
    return settings.PRIMARY_MODEL_PATH, settings.SECONDARY_MODEL_PATH
