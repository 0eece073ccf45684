"""Local OTA install server and bulk sign/install orchestration."""

__version__ = "0.1.0"
