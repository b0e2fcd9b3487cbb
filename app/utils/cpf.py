# app/utils/cpf.py
"""
CPF helpers. CPF (Cadastro de Pessoas Físicas) is the 11-digit Brazilian
taxpayer id used as the natural key for visitors and as an employee lookup key.
Stored digits-only; formatted as 000.000.000-00 for display only.
"""

import re
from typing import Optional

CPF_LENGTH = 11
_NON_DIGITS = re.compile(r"\D")


def normalize_cpf(value: Optional[str]) -> str:
    """Strip everything but digits. "111.222.333-44" -> "11122233344"."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def is_valid_cpf(value: Optional[str]) -> bool:
    """Shape check only (11 digits). Check digits are not verified."""
    return len(normalize_cpf(value)) == CPF_LENGTH


def looks_like_cpf(value: Optional[str]) -> bool:
    """True for inputs that are a CPF with or without punctuation."""
    if not value:
        return False
    return bool(re.fullmatch(r"\d{3}\.?\d{3}\.?\d{3}-?\d{2}", value.strip()))


def format_cpf(value: Optional[str]) -> Optional[str]:
    digits = normalize_cpf(value)
    if len(digits) != CPF_LENGTH:
        return value
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
