"""Re-encrypt stored OAuth tokens after rotating ``TOKEN_ENCRYPTION_SECRET``.

Move the old secret into ``TOKEN_ENCRYPTION_PREVIOUS_SECRETS``, set the new one,
then run::

    python -m scripts.rotate_tokens

Once it succeeds the old secret can be dropped from the environment.
"""

from __future__ import annotations

import logging
import sys

from sonny.core.config import AppSettings
from sonny.core.logging import configure_logging
from sonny.services.credential_store import SQLiteCredentialStore
from sonny.services.token_cipher import TokenCipherService

logger = logging.getLogger("sonny.scripts.rotate_tokens")


def rotate(settings: AppSettings) -> int:
    """Rotate every stored credential and return the number of users touched."""
    security = settings.security
    if not security.credential_store_path:
        raise RuntimeError("CREDENTIAL_STORE_PATH is unset; in-memory stores need no rotation.")
    if not security.token_encryption_secret:
        raise RuntimeError("TOKEN_ENCRYPTION_SECRET must name the new secret.")
    cipher = TokenCipherService(
        secret=security.token_encryption_secret,
        previous_secrets=security.previous_token_encryption_secrets,
    )
    store = SQLiteCredentialStore(security.credential_store_path, cipher=cipher)
    return store.rotate_encryption()


def main() -> int:
    settings = AppSettings()
    configure_logging(settings.log_level)
    try:
        count = rotate(settings)
    except (RuntimeError, ValueError) as exc:
        logger.error("Token rotation failed: %s", exc)
        return 1
    logger.info("Rotation complete for %d users", count)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
