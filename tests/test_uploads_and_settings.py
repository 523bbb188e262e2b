"""Tests for image uploads, settings loading and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from checkup_admin import log, settings, uploads
from checkup_admin.api_client import ApiError, SessionExpiredError


class FakeClient:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.uploaded = []

    def upload_file(self, filename, content, content_type):
        self.uploaded.append((filename, content, content_type))
        if self.error is not None:
            raise self.error
        return self.result


def test_upload_image_returns_url() -> None:
    client = FakeClient(result="https://cdn/x.png")

    url = uploads.upload_image(client, "x.png", b"png", "image/png")

    assert url == "https://cdn/x.png"
    assert client.uploaded == [("x.png", b"png", "image/png")]


def test_question_images_have_smaller_limit() -> None:
    client = FakeClient(result="https://cdn/x.png")
    content = b"x" * (uploads.QUESTION_IMAGE_MAX_BYTES + 1)

    with pytest.raises(uploads.UploadError, match="500 KB"):
        uploads.upload_image(client, "x.png", content, "image/png", uploads.QUESTION_IMAGE_MAX_BYTES)
    assert client.uploaded == []

    assert uploads.upload_image(client, "x.png", content, "image/png") == "https://cdn/x.png"


def test_non_images_are_rejected() -> None:
    with pytest.raises(uploads.UploadError, match="image file"):
        uploads.validate_image(b"%PDF", "application/pdf", uploads.TEMPLATE_IMAGE_MAX_BYTES)


def test_api_failures_become_upload_errors_but_expiry_propagates() -> None:
    with pytest.raises(uploads.UploadError):
        uploads.upload_image(FakeClient(error=ApiError("nope", status=500)), "x.png", b"x", "image/png")

    with pytest.raises(SessionExpiredError):
        uploads.upload_image(FakeClient(error=SessionExpiredError("expired")), "x.png", b"x", "image/png")


def test_settings_defaults() -> None:
    loaded = settings.load_settings({}, environ={})

    assert loaded == settings.Settings()
    assert loaded.autosave_interval == 30.0
    assert loaded.drafts_dir == Path(".drafts")


def test_settings_from_secrets_override_environment() -> None:
    secrets = {"api": {"base_url": "https://admin.example/api/", "autosave_interval": "15"}}
    environ = {"CHECKUP_ADMIN_BASE_URL": "http://ignored", "CHECKUP_ADMIN_LOG_LEVEL": "debug"}

    loaded = settings.load_settings(secrets, environ=environ)

    assert loaded.api_base_url == "https://admin.example/api"
    assert loaded.autosave_interval == 15.0
    assert loaded.log_level == "DEBUG"


@pytest.mark.parametrize(
    "values",
    [{"autosave_interval": "soon"}, {"autosave_interval": 0}, {"log_level": "chatty"}],
)
def test_invalid_settings_raise(values) -> None:
    with pytest.raises(ValueError):
        settings.load_settings({"api": values}, environ={})


def test_setup_logging_installs_one_handler() -> None:
    logger = logging.getLogger("checkup_admin")
    before = list(logger.handlers)
    logger.handlers = []
    try:
        log.setup_logging("debug")
        log.setup_logging("warning")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert logger.level == logging.WARNING
    finally:
        logger.handlers = before
        logger.setLevel(logging.NOTSET)
