"""Realtime speech gateway.

Importing the package populates ``os.environ`` before :mod:`realtime_speech.config`
reads it: either the file named by ``REALTIME_SPEECH_ENV_FILE``, or ``.env`` in the
server directory followed by ``.env.local`` for developer overrides.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

__version__ = "0.1.0"

_SERVER_DIR = Path(__file__).resolve().parent.parent

_env_file = os.getenv("REALTIME_SPEECH_ENV_FILE")
if _env_file:
    load_dotenv(_env_file, override=True)
else:
    load_dotenv(_SERVER_DIR / ".env")
    load_dotenv(_SERVER_DIR / ".env.local", override=True)
