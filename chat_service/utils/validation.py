"""
Input validation for chat requests.
"""

import re
from typing import Optional

from chat_service.utils.error_handler import ValidationError

MODEL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._:/-]+$")
MAX_MODEL_NAME_LENGTH = 100


def validate_message(message: Optional[str], max_length: int = 10000) -> str:
    """
    Check a user message and return it unchanged.

    Raises:
        ValidationError: If the message is missing, blank, too long or not valid Unicode
    """
    if not isinstance(message, str):
        raise ValidationError("Field 'message' is required and must be a string")
    if not message.strip():
        raise ValidationError("Message cannot be empty")
    if len(message) > max_length:
        raise ValidationError(f"Message is too long (max {max_length} characters)")
    try:
        message.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError("Message contains invalid Unicode (unpaired surrogate)")
    return message


def validate_model_name(model: Optional[str]) -> str:
    """
    Check a model name such as ``llama3.1:8b`` and return it unchanged.

    Raises:
        ValidationError: If the name is blank, too long or has invalid characters
    """
    if not isinstance(model, str) or not model.strip():
        raise ValidationError("Model name cannot be empty")
    if len(model) > MAX_MODEL_NAME_LENGTH:
        raise ValidationError(f"Model name is too long (max {MAX_MODEL_NAME_LENGTH} characters)")
    if not MODEL_NAME_PATTERN.match(model):
        raise ValidationError(f"Model name contains invalid characters: {model!r}")
    return model
