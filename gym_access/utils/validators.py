# =======================================================================================
# gym_access/utils/validators.py - Validation Helpers
# =======================================================================================
import re
from typing import Optional

from ..config import config
from .exceptions import InvalidCredentialError


class CredentialValidator:
    """Validates scanned card identifiers before any database work."""

    def __init__(self, max_length: Optional[int] = None, pattern: Optional[str] = None):
        self.max_length = max_length or config.CARD_ID_MAX_LENGTH
        self.pattern = re.compile(pattern or config.CARD_ID_PATTERN)

    def normalize_card_id(self, raw: Optional[str]) -> str:
        """Return the trimmed card id or raise InvalidCredentialError."""
        if raw is None:
            raise InvalidCredentialError("Card ID cannot be empty.")

        card_id = str(raw).strip()
        if not card_id:
            raise InvalidCredentialError("Card ID cannot be empty.")

        if len(card_id) > self.max_length:
            raise InvalidCredentialError(
                f"Card ID is longer than {self.max_length} characters."
            )

        if not self.pattern.match(card_id):
            raise InvalidCredentialError("Card ID contains unsupported characters.")

        return card_id

    def normalize_free_text(self, raw: Optional[str], max_length: int = 200) -> str:
        """Manual admissions take a name or a card id; only emptiness and size are checked."""
        value = " ".join((raw or "").split())
        if not value:
            raise InvalidCredentialError("Name or card ID is required.")
        if len(value) > max_length:
            raise InvalidCredentialError(f"Input is longer than {max_length} characters.")
        return value
