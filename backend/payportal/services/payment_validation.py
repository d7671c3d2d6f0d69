"""
Field validation for new payment instructions.

Every field is checked and all problems are reported together so the client
can highlight each one.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from payportal.errors import ValidationError

MAX_AMOUNT = Decimal("9999999999999999.99")

# Active ISO 4217 codes
ISO_4217_CODES = frozenset("""
AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF DKK DOP
DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HTG HUF
IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD KZT LAK
LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN MYR MZN
NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD RUB RWF
SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN SVC SYP SZL THB TJS TMT TND
TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES VND VUV WST XAF XCD XOF XPF YER
ZAR ZMW ZWL
""".split())

NAME_RE = re.compile(r"^[A-Za-z][A-Za-z .'\-]{1,99}$")
ACCOUNT_RE = re.compile(r"^[A-Z0-9]{4,34}$")
BANK_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 .,&'()\-]{1,99}$")
# BIC: bank (4 letters), country (2 letters), location (2), optional branch (3)
SWIFT_RE = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")


def _text(details: Mapping[str, Any], key: str) -> str:
    value = details.get(key)
    if value is None:
        return ""
    return str(value).strip()


def parse_amount(raw: Any) -> Decimal:
    """Parse an amount without passing through binary floating point arithmetic."""
    if raw is None or isinstance(raw, bool):
        raise ValueError("Amount is required")
    if isinstance(raw, str) and not raw.strip():
        raise ValueError("Amount is required")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError("Amount must be a decimal number")
    if not amount.is_finite():
        raise ValueError("Amount must be a decimal number")
    if amount <= 0:
        raise ValueError("Amount must be greater than zero")
    if amount.as_tuple().exponent < -2:
        raise ValueError("Amount may have at most 2 decimal places")
    if amount > MAX_AMOUNT:
        raise ValueError("Amount exceeds the maximum allowed")
    return amount.quantize(Decimal("0.01"))


def validate_payment_details(details: Mapping[str, Any]) -> Dict[str, Any]:
    """Return normalized payment fields or raise ValidationError listing every bad field."""
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    try:
        cleaned["amount"] = parse_amount(details.get("amount"))
    except ValueError as e:
        errors["amount"] = str(e)

    currency = _text(details, "currency").upper()
    if not currency:
        errors["currency"] = "Currency is required"
    elif currency not in ISO_4217_CODES:
        errors["currency"] = "Currency must be a recognized ISO 4217 code"
    else:
        cleaned["currency"] = currency

    beneficiary_name = _text(details, "beneficiary_name")
    if not beneficiary_name:
        errors["beneficiary_name"] = "Beneficiary name is required"
    elif not NAME_RE.match(beneficiary_name):
        errors["beneficiary_name"] = "Beneficiary name contains invalid characters"
    else:
        cleaned["beneficiary_name"] = beneficiary_name

    beneficiary_account = _text(details, "beneficiary_account").replace(" ", "").upper()
    if not beneficiary_account:
        errors["beneficiary_account"] = "Beneficiary account is required"
    elif not ACCOUNT_RE.match(beneficiary_account):
        errors["beneficiary_account"] = "Beneficiary account must be 4-34 letters or digits"
    else:
        cleaned["beneficiary_account"] = beneficiary_account

    bank_name = _text(details, "bank_name")
    if not bank_name:
        errors["bank_name"] = "Bank name is required"
    elif not BANK_NAME_RE.match(bank_name):
        errors["bank_name"] = "Bank name contains invalid characters"
    else:
        cleaned["bank_name"] = bank_name

    swift_code = _text(details, "swift_code").upper()
    if not swift_code:
        errors["swift_code"] = "SWIFT code is required"
    elif not SWIFT_RE.match(swift_code):
        errors["swift_code"] = "SWIFT code must be a valid 8 or 11 character BIC"
    else:
        cleaned["swift_code"] = swift_code

    if errors:
        raise ValidationError("Invalid payment details", fields=errors)
    return cleaned
