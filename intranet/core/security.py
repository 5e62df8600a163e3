import re
import html
import logging
from typing import Any, Optional
from cryptography.fernet import Fernet, InvalidToken
from intranet.core.config import settings

logger = logging.getLogger(__name__)

_cipher = Fernet(settings.encryption_key)


def encrypt_data(data: Optional[str]) -> Optional[str]:
    """Encrypt sensitive string data."""
    if not data:
        return data
    try:
        return _cipher.encrypt(data.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError(f"Encryption failed, refusing to store plaintext: {e}") from e


def decrypt_data(encrypted_data: Optional[str]) -> Optional[str]:
    """Decrypt sensitive string data."""
    if not encrypted_data:
        return encrypted_data
    try:
        return _cipher.decrypt(encrypted_data.encode()).decode()
    except InvalidToken:
        logger.warning("Decryption failed (value possibly stored before encryption was enabled)")
        return encrypted_data


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Keep only the last four digits of a phone number."""
    if not phone:
        return phone
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 4:
        return "****"
    return "*" * (len(digits) - 4) + digits[-4:]


def sanitize_input(text: Any) -> Any:
    """Basic input sanitization to prevent XSS."""
    if not isinstance(text, str):
        return text
    # Remove script blocks before escaping, otherwise the escaped tags survive as text
    stripped = re.sub(r'<script.*?>.*?</script>', '', text, flags=re.DOTALL | re.IGNORECASE)
    return html.escape(stripped)

