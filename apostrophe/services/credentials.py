"""
Apostrophe Backend — Credential Resolver
==========================================

What:  Finds the API key for a provider at call time, and persists keys the
       user enters in the settings dialog.
Why:   Keys can be rotated while the app is running (edit the file, export a
       new variable). Resolving on every call means no restart is needed.
How:   Environment variable first, then a flat file under the per-user config
       directory. Values are whitespace-trimmed; empty means absent.
Who:   Dispatcher (before each adapter invocation), AIService (specialised
       operations, provider status, credential save).

Sources:
    gemini       GEMINI_API_KEY       <config_dir>/gemini_key.txt
    huggingface  HUGGINGFACE_API_KEY  <config_dir>/hf_key.txt
    ollama       (none, local model)

Security:
    Keys are never logged. Key files are created 0600 inside a 0700 directory.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from apostrophe.config import Settings
from apostrophe.exceptions import ValidationError
from apostrophe.services.llm_base import ProviderName

logger = logging.getLogger(__name__)

# provider → (environment variable, file name under config_dir)
CREDENTIAL_SOURCES: Dict[ProviderName, Tuple[str, str]] = {
    ProviderName.GEMINI: ("GEMINI_API_KEY", "gemini_key.txt"),
    ProviderName.HUGGINGFACE: ("HUGGINGFACE_API_KEY", "hf_key.txt"),
}


class CredentialResolver:
    """Per-call credential lookup. Holds no secrets between calls."""

    def __init__(self, settings: Settings):
        self.config_dir = Path(settings.config_dir)

    def credential_path(self, provider: ProviderName) -> Path:
        _, filename = self._sources(provider)
        return self.config_dir / filename

    def resolve(self, provider: ProviderName) -> Optional[str]:
        """
        Return the credential for `provider`, or None when none is configured.

        Never raises. An unreadable key file is logged and treated as absent.
        """
        try:
            source = CREDENTIAL_SOURCES.get(ProviderName(provider))
        except ValueError:
            return None
        if source is None:
            return None
        env_var, filename = source

        value = os.environ.get(env_var, "").strip()
        if value:
            return value

        path = self.config_dir / filename
        try:
            value = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read credential file %s: %s", path, type(e).__name__)
            return None
        return value or None

    def persist(self, provider: ProviderName, credential: str) -> Path:
        """
        Write `credential` to the provider's key file.

        The value is stored as given (no format check). Subsequent resolve()
        calls return it unless the environment variable is set.

        Raises:
            ValidationError: provider takes no credential
            OSError: directory or file could not be written
        """
        path = self.credential_path(provider)
        self.config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

        # Created owner-only; fchmod also tightens a pre-existing looser file
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(f.fileno(), 0o600)
            f.write(credential)

        logger.info("Saved %s credential to %s", ProviderName(provider).value, path)
        return path

    @staticmethod
    def _sources(provider) -> Tuple[str, str]:
        try:
            name = ProviderName(provider)
        except ValueError:
            raise ValidationError(
                message=f"Unknown provider '{provider}'", field="provider"
            )
        source = CREDENTIAL_SOURCES.get(name)
        if source is None:
            raise ValidationError(
                message=f"Provider '{name.value}' does not use a credential",
                field="provider",
            )
        return source
