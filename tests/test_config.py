"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from framecast.config import Settings, load_config
from framecast.main import create_controller, create_policy
from framecast.decode import ProbeReport
from framecast.models import VideoSource
from framecast.pacing import PacingMode


ENV_VARS = [
    "FRAMECAST_VIDEO_URL",
    "FRAMECAST_FALLBACK_URL",
    "FRAMECAST_WIDTH",
    "FRAMECAST_HEIGHT",
    "FRAMECAST_FPS",
    "FRAMECAST_PACING_MODE",
    "FRAMECAST_ENV",
    "FRAMECAST_LOG_LEVEL",
    "FRAMECAST_PORT",
    "RENDER_EXTERNAL_URL",
    "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:

    def test_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "missing.yaml"))

        assert settings.frame.width == 192
        assert settings.frame.height == 144
        assert settings.frame.fps == 6.0
        assert settings.pacing.mode == "fixed"
        assert settings.failure.large_skip is None

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "source:\n"
            "  url: https://cdn.example.com/clip.mp4\n"
            "frame:\n"
            "  fps: 12\n"
            "failure:\n"
            "  cooldown_seconds: 3\n"
        )

        settings = load_config(str(path))

        assert settings.source.url == "https://cdn.example.com/clip.mp4"
        assert settings.frame.fps == 12.0
        assert settings.failure.cooldown_seconds == 3.0

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("frame:\n  width: 64\n  height: 48\n")
        monkeypatch.setenv("FRAMECAST_WIDTH", "320")
        monkeypatch.setenv("FRAMECAST_PACING_MODE", "ADAPTIVE")
        monkeypatch.setenv("PORT", "8080")

        settings = load_config(str(path))

        assert settings.frame.width == 320
        assert settings.frame.height == 48
        assert settings.pacing.mode == "adaptive"
        assert settings.server.port == 8080

    def test_invalid_pacing_mode(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FRAMECAST_PACING_MODE", "turbo")
        with pytest.raises(ValidationError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_thresholds_validated(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"failure": {"low_threshold": 5, "high_threshold": 1}})


class TestFactories:

    def test_large_skip_defaults_to_two_seconds(self):
        settings = Settings.model_validate({"frame": {"fps": 15}})
        assert create_policy(settings).thresholds.large_skip == 30

    def test_controller_sized_from_probe(self):
        settings = Settings.model_validate({
            "frame": {"width": 8, "height": 4, "fps": 6},
            "pacing": {"mode": "adaptive"},
        })
        report = ProbeReport(source=VideoSource("clip.mp4"), duration_seconds=60.0, used_default=True)

        controller = create_controller(settings, report)

        assert controller.cursor.total_frames == 360
        assert controller.mode is PacingMode.ADAPTIVE
        assert str(controller.dimensions) == "8x4"
