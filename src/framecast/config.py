"""
framecast Configuration
=======================

This module handles configuration loading for the frame server.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMECAST_VIDEO_URL       -> source.url
    FRAMECAST_FALLBACK_URL    -> source.fallback_url
    FRAMECAST_WIDTH           -> frame.width
    FRAMECAST_HEIGHT          -> frame.height
    FRAMECAST_FPS             -> frame.fps
    FRAMECAST_FFMPEG          -> decoder.ffmpeg_path
    FRAMECAST_FFPROBE         -> decoder.ffprobe_path
    FRAMECAST_DECODE_TIMEOUT  -> decoder.decode_timeout_seconds
    FRAMECAST_PROBE_TIMEOUT   -> decoder.probe_timeout_seconds
    FRAMECAST_PACING_MODE     -> pacing.mode
    FRAMECAST_ENV             -> service.environment
    FRAMECAST_LOG_LEVEL       -> logging.level
    RENDER_EXTERNAL_URL       -> keepalive.external_url
    PORT                      -> server.port (hosting platforms)

Example:
    from framecast.config import settings

    print(settings.source.url)
    print(settings.frame.width, settings.frame.height, settings.frame.fps)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification."""

    name: str = Field(default="framecast", description="Service name")
    version: str = Field(default="0.1.0", description="Service version")
    environment: str = Field(
        default="development",
        description="Deployment environment ('production' enables keep-alive)",
    )


class SourceConfig(BaseModel):
    """Video source configuration."""

    url: str = Field(
        default="./video.mp4",
        description="Local path or http(s) URL of the video",
    )
    fallback_url: Optional[str] = Field(
        default=None,
        description="Source probed when the primary cannot be probed at startup",
    )


class FrameConfig(BaseModel):
    """Output frame geometry and rate."""

    width: int = Field(default=192, ge=1, le=4096, description="Frame width (px)")
    height: int = Field(default=144, ge=1, le=4096, description="Frame height (px)")
    fps: float = Field(default=6.0, gt=0, le=120, description="Target frame rate")


class DecoderConfig(BaseModel):
    """External decoder configuration."""

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable")
    decode_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Hard deadline for a single frame decode",
    )
    probe_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Hard deadline for a single probe",
    )


class ProbeConfig(BaseModel):
    """Startup probing retry configuration."""

    max_attempts: int = Field(default=3, ge=1, description="Attempts per source")
    backoff_seconds: float = Field(default=2.0, ge=0, description="Delay between attempts")
    default_duration_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Duration used when no source can be probed",
    )
    http_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for the remote HEAD check",
    )


class PacingConfig(BaseModel):
    """Tick scheduling configuration."""

    mode: str = Field(default="fixed", description="'fixed' or 'adaptive'")
    min_delay_ms: float = Field(
        default=20.0,
        ge=0,
        description="Minimum delay between adaptive ticks",
    )

    @model_validator(mode="after")
    def _check_mode(self) -> "PacingConfig":
        if self.mode not in ("fixed", "adaptive"):
            raise ValueError(f"pacing.mode must be 'fixed' or 'adaptive', got {self.mode!r}")
        return self


class FailureConfig(BaseModel):
    """Failure policy thresholds."""

    low_threshold: int = Field(default=2, ge=0, description="Streak handled by small skips")
    high_threshold: int = Field(default=6, ge=0, description="Streak above which decoding pauses")
    small_skip: int = Field(default=1, ge=1, description="Frames skipped per isolated failure")
    large_skip: Optional[int] = Field(
        default=None,
        ge=1,
        description="Frames skipped past a bad region (default: 2 seconds of video)",
    )
    cooldown_seconds: float = Field(default=10.0, ge=0, description="Pause length")
    resume_streak: int = Field(default=0, ge=0, description="Streak restored after a pause")
    retry_in_place: bool = Field(
        default=False,
        description="Hold the cursor on low-band failures instead of skipping",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "FailureConfig":
        if self.high_threshold < self.low_threshold:
            raise ValueError("failure.high_threshold must be >= failure.low_threshold")
        if self.resume_streak > self.high_threshold:
            raise ValueError("failure.resume_streak must be <= failure.high_threshold")
        return self


class CacheConfig(BaseModel):
    """Recent-frame cache configuration."""

    capacity: int = Field(default=60, ge=1, description="Frames kept for batch endpoints")


class KeepAliveConfig(BaseModel):
    """Self-ping configuration."""

    enabled: bool = Field(default=False, description="Force keep-alive on")
    url: Optional[str] = Field(default=None, description="Public base URL to ping")
    external_url: Optional[str] = Field(
        default=None,
        description="Platform-provided external URL (RENDER_EXTERNAL_URL)",
    )
    interval_seconds: float = Field(default=840.0, gt=0, description="Ping interval")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=10000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for framecast.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    frame: FrameConfig = Field(default_factory=FrameConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    failure: FailureConfig = Field(default_factory=FailureConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    keepalive: KeepAliveConfig = Field(default_factory=KeepAliveConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Source settings
    if env_url := os.environ.get("FRAMECAST_VIDEO_URL"):
        config_data.setdefault("source", {})["url"] = env_url
    if env_fallback := os.environ.get("FRAMECAST_FALLBACK_URL"):
        config_data.setdefault("source", {})["fallback_url"] = env_fallback

    # Frame settings
    if env_width := os.environ.get("FRAMECAST_WIDTH"):
        config_data.setdefault("frame", {})["width"] = int(env_width)
    if env_height := os.environ.get("FRAMECAST_HEIGHT"):
        config_data.setdefault("frame", {})["height"] = int(env_height)
    if env_fps := os.environ.get("FRAMECAST_FPS"):
        config_data.setdefault("frame", {})["fps"] = float(env_fps)

    # Decoder settings
    if env_ffmpeg := os.environ.get("FRAMECAST_FFMPEG"):
        config_data.setdefault("decoder", {})["ffmpeg_path"] = env_ffmpeg
    if env_ffprobe := os.environ.get("FRAMECAST_FFPROBE"):
        config_data.setdefault("decoder", {})["ffprobe_path"] = env_ffprobe
    if env_dt := os.environ.get("FRAMECAST_DECODE_TIMEOUT"):
        config_data.setdefault("decoder", {})["decode_timeout_seconds"] = float(env_dt)
    if env_pt := os.environ.get("FRAMECAST_PROBE_TIMEOUT"):
        config_data.setdefault("decoder", {})["probe_timeout_seconds"] = float(env_pt)

    # Pacing settings
    if env_mode := os.environ.get("FRAMECAST_PACING_MODE"):
        config_data.setdefault("pacing", {})["mode"] = env_mode.lower()

    # Service / keep-alive settings
    if env_name := os.environ.get("FRAMECAST_ENV"):
        config_data.setdefault("service", {})["environment"] = env_name
    if env_external := os.environ.get("RENDER_EXTERNAL_URL"):
        config_data.setdefault("keepalive", {})["external_url"] = env_external

    # Server settings (hosting platforms use PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMECAST_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("FRAMECAST_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
