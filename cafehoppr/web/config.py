from __future__ import annotations

from cafehoppr.core.config import settings


class Config:
    API_BASE_URL = settings.api_base_url
    SECRET_KEY = settings.flask_secret_key
    BACKEND = settings.backend
    STAGING_DIR = settings.staging_dir
    UPLOAD_DIR = settings.upload_dir
    SHOW_SAMPLE_ON_ERROR = settings.show_sample_on_error
    # Whole multipart request: up to five photos of 5 MiB plus form fields.
    MAX_CONTENT_LENGTH = 26 * 1024 * 1024
