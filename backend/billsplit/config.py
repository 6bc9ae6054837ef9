from __future__ import annotations

import os


class Config:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
