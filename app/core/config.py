import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# DEV ONLY default secret. Set SECRET_KEY in the environment for real deployments.
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE = timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")))

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/clone_lab.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Discussions
MESSAGE_PREVIEW_LENGTH = int(os.getenv("MESSAGE_PREVIEW_LENGTH", "120"))
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "5000"))
GENERAL_DISCUSSION_TITLE = "General Discussion"
