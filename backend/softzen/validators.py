# backend/softzen/validators.py
"""
Field validators for request payloads.

Each ``validate_*`` function takes the raw value and the name of the field it
came from, and returns the normalised value or raises
:class:`~softzen.errors.ValidationError` with a machine readable ``code``.
Validators are pure and idempotent on their own output.

:func:`validate_fields` runs a chain of validators over a payload. Handlers run
chains fail-fast; the bulk pre-validation endpoint collects every error.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field as dc_field
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from email_validator import EmailNotValidError, validate_email as check_email_address

from softzen import catalog
from softzen.errors import ValidationError

SUSPICIOUS_EMAIL_DOMAINS = frozenset({
    "gmial.com", "gmai.com", "gmail.co", "gmail.con", "gnail.com",
    "yahooo.com", "yaho.com", "yahoo.con",
    "hotmial.com", "hotmai.com", "hotmail.con",
    "outlok.com", "outloo.com", "outlook.con",
})

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
WEAK_PASSWORD_PATTERNS = (
    re.compile(r"^(.)\1+$"),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"123456"),
    re.compile(r"qwerty", re.IGNORECASE),
    re.compile(r"abc123", re.IGNORECASE),
    re.compile(r"letmein", re.IGNORECASE),
    re.compile(r"welcome", re.IGNORECASE),
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"^\d+$"),
    re.compile(r"^[a-zA-Z]+$"),
)

KNOWN_CONDITIONS = frozenset({
    "anxiety", "depression", "stress", "insomnia", "arthritis",
    "rheumatoid_arthritis", "osteoarthritis", "back_pain", "lower_back_pain",
    "neck_pain", "shoulder_pain", "chronic_pain", "sciatica", "scoliosis",
    "fibromyalgia", "osteoporosis", "hypertension", "migraine", "asthma",
    "pregnancy", "post_surgery_recovery", "knee_pain", "hip_pain",
})
CONDITION_PATTERN = re.compile(r"^[\w\-.,()/'&+]+$")
SERIES_NAME_PATTERN = re.compile(r"^[\w \-.,()]+$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
MAX_INTEGER_DIGITS = 18

USER_ROLES = ("instructor", "patient", "admin")
DEFAULT_ROLE = "instructor"
DEFAULT_DURATION_MINUTES = 30
DEFAULT_COMMENTS_MIN_LENGTH = 10
COMMENTS_MAX_LENGTH = 1000
MAX_POSTURES = 50


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_integer(value: Any, field: str, label: str) -> int:
    """Parse ints, integral floats and integer strings; raise on anything else."""
    if _is_blank(value):
        raise ValidationError(f"{label} is required", field, "REQUIRED")
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a whole number", field, "NOT_A_NUMBER")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{label} must be a whole number", field, "NOT_A_NUMBER")
    if isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
        text = value.strip()
        if len(text.lstrip("+-")) > MAX_INTEGER_DIGITS:
            raise ValidationError(f"{label} is out of range", field, "OUT_OF_RANGE")
        return int(text)
    raise ValidationError(f"{label} must be a whole number", field, "NOT_A_NUMBER")


def _integer_in_range(value: Any, field: str, label: str, low: int, high: int) -> int:
    number = parse_integer(value, field, label)
    if not low <= number <= high:
        raise ValidationError(f"{label} must be between {low} and {high}", field, "OUT_OF_RANGE")
    return number


def validate_required(value: Any, field: str, label: Optional[str] = None) -> Any:
    if _is_blank(value):
        raise ValidationError(f"{label or field} is required", field, "REQUIRED")
    return value


def validate_email(value: Any, field: str = "email") -> str:
    if _is_blank(value):
        raise ValidationError("Email is required", field, "REQUIRED")
    if not isinstance(value, str):
        raise ValidationError("Email must be text", field, "FORMAT")
    email = value.strip().lower()
    if not 5 <= len(email) <= 254:
        raise ValidationError("Email must be between 5 and 254 characters", field, "LENGTH")
    try:
        check_email_address(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Email format is invalid", field, "FORMAT") from exc
    domain = email.rsplit("@", 1)[1]
    if domain in SUSPICIOUS_EMAIL_DOMAINS:
        raise ValidationError(
            f"Email domain '{domain}' looks like a typo", field, "SUSPICIOUS_DOMAIN"
        )
    return email


def validate_name(value: Any, field: str = "name") -> str:
    if value is None:
        raise ValidationError("Name is required", field, "REQUIRED")
    if not isinstance(value, str):
        raise ValidationError("Name may only contain letters and spaces", field, "FORMAT")
    name = value.strip()
    if not name:
        if value:
            raise ValidationError("Name cannot be only spaces", field, "EMPTY")
        raise ValidationError("Name is required", field, "REQUIRED")
    if not 2 <= len(name) <= 50:
        raise ValidationError("Name must be between 2 and 50 characters", field, "LENGTH")
    if "  " in name:
        raise ValidationError("Name cannot contain consecutive spaces", field, "MULTIPLE_SPACES")
    if not all(ch.isalpha() or ch == " " for ch in name):
        raise ValidationError("Name may only contain letters and spaces", field, "FORMAT")
    return name


def validate_age(value: Any, field: str = "age") -> int:
    return _integer_in_range(value, field, "Age", 1, 120)


def validate_medical_condition(value: Any, field: str = "condition") -> str:
    if _is_blank(value):
        raise ValidationError("Medical condition is required", field, "REQUIRED")
    if not isinstance(value, str):
        raise ValidationError("Medical condition contains invalid characters", field, "INVALID_CHARACTERS")
    condition = re.sub(r"\s+", "_", value.strip().lower())
    if not 3 <= len(condition) <= 200:
        raise ValidationError("Medical condition must be between 3 and 200 characters", field, "LENGTH")
    if condition in KNOWN_CONDITIONS or CONDITION_PATTERN.match(condition):
        return condition
    raise ValidationError("Medical condition contains invalid characters", field, "INVALID_CHARACTERS")


def validate_password(value: Any, field: str = "password") -> str:
    if value is None or value == "" or not isinstance(value, str):
        raise ValidationError("Password is required", field, "REQUIRED")
    # The special-character rule is reported regardless of the other rules.
    if not any(ch in SPECIAL_CHARACTERS for ch in value):
        raise ValidationError(
            "Password must contain at least one special character", field, "MISSING_SPECIAL"
        )
    if not 8 <= len(value) <= 128:
        raise ValidationError("Password must be between 8 and 128 characters", field, "LENGTH")
    if not re.search(r"[a-z]", value):
        raise ValidationError("Password must contain a lowercase letter", field, "MISSING_LOWERCASE")
    if not re.search(r"[A-Z]", value):
        raise ValidationError("Password must contain an uppercase letter", field, "MISSING_UPPERCASE")
    if not re.search(r"\d", value):
        raise ValidationError("Password must contain a number", field, "MISSING_NUMBER")
    if any(pattern.search(value) for pattern in WEAK_PASSWORD_PATTERNS):
        raise ValidationError("Password is too common or predictable", field, "WEAK_PASSWORD")
    return value


def validate_series_name(value: Any, field: str = "name") -> str:
    if _is_blank(value):
        raise ValidationError("Series name is required", field, "REQUIRED")
    if not isinstance(value, str):
        raise ValidationError("Series name contains invalid characters", field, "INVALID_CHARACTERS")
    name = value.strip()
    if not 3 <= len(name) <= 100:
        raise ValidationError("Series name must be between 3 and 100 characters", field, "LENGTH")
    if not SERIES_NAME_PATTERN.match(name):
        raise ValidationError("Series name contains invalid characters", field, "INVALID_CHARACTERS")
    return name


def validate_therapy_type(value: Any, field: str = "therapyType") -> str:
    if _is_blank(value):
        raise ValidationError("Therapy type is required", field, "REQUIRED")
    if not catalog.is_therapy_type(value):
        raise ValidationError(
            f"Therapy type must be one of: {', '.join(catalog.therapy_type_keys())}",
            field,
            "INVALID_TYPE",
        )
    return value


def validate_postures(value: Any, field: str = "postures") -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        raise ValidationError("Postures must be a list", field, "NOT_ARRAY")
    if not value:
        raise ValidationError("Select at least one posture", field, "EMPTY_ARRAY")
    if len(value) > MAX_POSTURES:
        raise ValidationError(f"A series can hold at most {MAX_POSTURES} postures", field, "TOO_MANY_ITEMS")
    for index, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise ValidationError(f"Posture #{index + 1} is not an object", field, "INVALID_ITEM")
        if _is_blank(item.get("id")) or _is_blank(item.get("name")):
            raise ValidationError(
                f"Posture #{index + 1} needs an id and a name", field, "MISSING_REQUIRED_FIELDS"
            )
    return value


def validate_total_sessions(value: Any, field: str = "totalSessions") -> int:
    return _integer_in_range(value, field, "Total sessions", 1, 100)


def validate_pain_level(value: Any, field: str = "painLevel") -> int:
    return _integer_in_range(value, field, "Pain level", 0, 10)


def validate_comments(
    value: Any, field: str = "comments", min_length: int = DEFAULT_COMMENTS_MIN_LENGTH
) -> str:
    if _is_blank(value):
        raise ValidationError("Comments are required", field, "REQUIRED")
    if not isinstance(value, str):
        raise ValidationError("Comments must be text", field, "INVALID_CONTENT")
    comments = value.strip()
    if len(comments) < min_length:
        raise ValidationError(f"Comments must be at least {min_length} characters", field, "TOO_SHORT")
    if len(comments) > COMMENTS_MAX_LENGTH:
        raise ValidationError(
            f"Comments cannot exceed {COMMENTS_MAX_LENGTH} characters", field, "TOO_LONG"
        )
    if not any(ch.isalpha() for ch in comments):
        raise ValidationError("Comments must contain some text", field, "INVALID_CONTENT")
    return comments


def validate_duration(value: Any, field: str = "durationMinutes") -> int:
    if _is_blank(value):
        return DEFAULT_DURATION_MINUTES
    return _integer_in_range(value, field, "Duration", 5, 180)


def validate_user_role(value: Any, field: str = "role") -> str:
    if _is_blank(value):
        return DEFAULT_ROLE
    if value not in USER_ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(USER_ROLES)}", field, "INVALID_ROLE")
    return value


Validator = Callable[..., Any]
Step = Tuple[str, Validator]


@dataclass
class ValidationResult:
    """Outcome of a validation chain: normalised values, or the errors found."""

    values: Dict[str, Any] = dc_field(default_factory=dict)
    errors: List[ValidationError] = dc_field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_first(self) -> Dict[str, Any]:
        if self.errors:
            raise self.errors[0]
        return self.values

    def error_list(self) -> List[Dict[str, Any]]:
        return [err.to_response() for err in self.errors]


def validate_fields(
    steps: Sequence[Step], payload: Mapping[str, Any], *, collect_all: bool = False
) -> ValidationResult:
    result = ValidationResult()
    for key, validator in steps:
        try:
            result.values[key] = validator(payload.get(key), field=key)
        except ValidationError as exc:
            result.errors.append(exc)
            if not collect_all:
                break
    return result


def entity_steps(entity: str, *, comments_min_length: int = DEFAULT_COMMENTS_MIN_LENGTH) -> List[Step]:
    if entity == "user":
        return [
            ("email", validate_email),
            ("password", validate_password),
            ("name", validate_name),
            ("role", validate_user_role),
        ]
    if entity == "patient":
        return [
            ("name", validate_name),
            ("email", validate_email),
            ("age", validate_age),
            ("condition", validate_medical_condition),
        ]
    if entity == "series":
        return [
            ("name", validate_series_name),
            ("therapyType", validate_therapy_type),
            ("postures", validate_postures),
            ("totalSessions", validate_total_sessions),
        ]
    if entity == "session":
        return [
            ("painBefore", validate_pain_level),
            ("painAfter", validate_pain_level),
            ("comments", partial(validate_comments, min_length=comments_min_length)),
            ("durationMinutes", validate_duration),
        ]
    if entity == "login":
        return [
            ("email", partial(validate_required, label="Email")),
            ("password", partial(validate_required, label="Password")),
        ]
    raise KeyError(entity)


ENTITY_TYPES = ("user", "patient", "series", "session")
