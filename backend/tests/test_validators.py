import pytest

from softzen.errors import ValidationError
from softzen.validators import (
    entity_steps,
    parse_integer,
    validate_age,
    validate_comments,
    validate_duration,
    validate_email,
    validate_fields,
    validate_medical_condition,
    validate_name,
    validate_pain_level,
    validate_password,
    validate_postures,
    validate_series_name,
    validate_therapy_type,
    validate_total_sessions,
    validate_user_role,
)


def code_of(fn, *args, **kwargs):
    with pytest.raises(ValidationError) as excinfo:
        fn(*args, **kwargs)
    return excinfo.value.code


def test_email_is_normalised():
    assert validate_email("  Lucia@Example.COM ") == "lucia@example.com"


@pytest.mark.parametrize(
    "value, code",
    [
        (None, "REQUIRED"),
        ("   ", "REQUIRED"),
        ("a@b", "LENGTH"),
        ("not-an-email", "FORMAT"),
        ("a..b@example.com", "FORMAT"),
        (".ana@example.com", "FORMAT"),
        ("lucia@gmial.com", "SUSPICIOUS_DOMAIN"),
    ],
)
def test_email_rejections(value, code):
    assert code_of(validate_email, value) == code


def test_name_rules():
    assert validate_name("  José Pérez ") == "José Pérez"
    assert code_of(validate_name, "   ") == "EMPTY"
    assert code_of(validate_name, "A") == "LENGTH"
    assert code_of(validate_name, "Ana  Lopez") == "MULTIPLE_SPACES"
    assert code_of(validate_name, "R2D2 Robot") == "FORMAT"


def test_age_accepts_numeric_strings_only_when_whole():
    assert validate_age("42") == 42
    assert validate_age(42.0) == 42
    assert code_of(validate_age, "42.5") == "NOT_A_NUMBER"
    assert code_of(validate_age, True) == "NOT_A_NUMBER"
    assert code_of(validate_age, 0) == "OUT_OF_RANGE"
    assert code_of(validate_age, 121) == "OUT_OF_RANGE"


def test_overlong_digit_strings_are_out_of_range():
    assert code_of(validate_age, "9" * 5000) == "OUT_OF_RANGE"
    assert code_of(validate_age, "-" + "9" * 5000) == "OUT_OF_RANGE"
    assert code_of(parse_integer, "1" * 19, "seriesId", "Series id") == "OUT_OF_RANGE"
    assert parse_integer("0" * 3 + "7", "seriesId", "Series id") == 7


def test_parse_integer_requires_a_value():
    assert code_of(parse_integer, "", "seriesId", "Series id") == "REQUIRED"


def test_medical_condition_is_normalised():
    assert validate_medical_condition("Lower Back Pain") == "lower_back_pain"
    assert code_of(validate_medical_condition, "ab") == "LENGTH"
    assert code_of(validate_medical_condition, "pain <script>") == "INVALID_CHARACTERS"


@pytest.mark.parametrize(
    "value, code",
    [
        (None, "REQUIRED"),
        ("NoSpecial123", "MISSING_SPECIAL"),
        # missing special wins over every other rule
        ("abc", "MISSING_SPECIAL"),
        ("Ab1!", "LENGTH"),
        ("NOLOWER#123", "MISSING_LOWERCASE"),
        ("noupper#123", "MISSING_UPPERCASE"),
        ("NoNumber#here", "MISSING_NUMBER"),
        ("Password#123", "WEAK_PASSWORD"),
        ("Welcome!2024", "WEAK_PASSWORD"),
    ],
)
def test_password_rules(value, code):
    assert code_of(validate_password, value) == code


def test_strong_password_is_returned_verbatim():
    assert validate_password(" Serene#Flow42") == " Serene#Flow42"


def test_series_fields():
    assert validate_series_name(" Calma (fase 1) ") == "Calma (fase 1)"
    assert code_of(validate_series_name, "ab") == "LENGTH"
    assert code_of(validate_series_name, "Calma <b>") == "INVALID_CHARACTERS"
    assert validate_therapy_type("back_pain") == "back_pain"
    assert code_of(validate_therapy_type, "headache") == "INVALID_TYPE"
    assert validate_total_sessions("12") == 12
    assert code_of(validate_total_sessions, 101) == "OUT_OF_RANGE"


def test_postures_list_shape():
    assert code_of(validate_postures, "1,2") == "NOT_ARRAY"
    assert code_of(validate_postures, []) == "EMPTY_ARRAY"
    assert code_of(validate_postures, [{"id": i, "name": "x"} for i in range(51)]) == "TOO_MANY_ITEMS"
    assert code_of(validate_postures, ["cobra"]) == "INVALID_ITEM"
    assert code_of(validate_postures, [{"id": 1}]) == "MISSING_REQUIRED_FIELDS"


def test_session_fields():
    assert validate_pain_level("0") == 0
    assert code_of(validate_pain_level, 11) == "OUT_OF_RANGE"
    assert validate_comments("  Felt calmer today  ") == "Felt calmer today"
    assert code_of(validate_comments, "short") == "TOO_SHORT"
    assert validate_comments("short", min_length=3) == "short"
    assert code_of(validate_comments, "x" * 1001) == "TOO_LONG"
    assert code_of(validate_comments, "1234567890!!") == "INVALID_CONTENT"
    assert validate_duration(None) == 30
    assert validate_duration("45") == 45
    assert code_of(validate_duration, 4) == "OUT_OF_RANGE"


def test_user_role_defaults_to_instructor():
    assert validate_user_role(None) == "instructor"
    assert validate_user_role("patient") == "patient"
    assert code_of(validate_user_role, "root") == "INVALID_ROLE"


def test_validators_are_idempotent_on_their_output():
    email = validate_email(" Ana@Example.com")
    assert validate_email(email) == email
    condition = validate_medical_condition("Chronic Pain")
    assert validate_medical_condition(condition) == condition


def test_chain_stops_at_first_error():
    result = validate_fields(entity_steps("patient"), {"name": "A", "email": "bad", "age": 500})
    assert not result.ok
    assert [e.field for e in result.errors] == ["name"]
    with pytest.raises(ValidationError) as excinfo:
        result.raise_first()
    assert excinfo.value.code == "LENGTH"


def test_chain_collects_every_error_when_asked():
    result = validate_fields(
        entity_steps("patient"), {"name": "A", "email": "not-an-email", "age": 500, "condition": "anxiety"},
        collect_all=True,
    )
    assert [(e["field"], e["code"]) for e in result.error_list()] == [
        ("name", "LENGTH"),
        ("email", "FORMAT"),
        ("age", "OUT_OF_RANGE"),
    ]
    assert result.values == {"condition": "anxiety"}


def test_session_chain_uses_configured_comment_length():
    payload = {"painBefore": 5, "painAfter": 3, "comments": "ok good"}
    assert not validate_fields(entity_steps("session"), payload).ok
    values = validate_fields(entity_steps("session", comments_min_length=5), payload).raise_first()
    assert values["durationMinutes"] == 30
