import base64
import json
import os
import pathlib
from functools import lru_cache

from google.cloud import firestore
from google.oauth2 import service_account

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_db() -> firestore.Client:
    """Create the Firestore client once.

    Credentials are resolved in order: base64 service-account JSON in
    ``FIREBASE_KEY_B64``, a key file at ``GOOGLE_APPLICATION_CREDENTIALS``,
    then application default credentials.
    """
    settings = get_settings()
    project = settings.firestore_project_id or os.getenv("GOOGLE_CLOUD_PROJECT") or None

    key_b64 = os.getenv("FIREBASE_KEY_B64")
    if key_b64:
        creds = service_account.Credentials.from_service_account_info(
            json.loads(base64.b64decode(key_b64))
        )
        return firestore.Client(project=project or creds.project_id, credentials=creds)

    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if path and pathlib.Path(path).exists():
        creds = service_account.Credentials.from_service_account_file(path)
        return firestore.Client(project=project or creds.project_id, credentials=creds)

    return firestore.Client(project=project)
