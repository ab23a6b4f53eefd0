from __future__ import annotations

import pytest

from task_api.app.validator import (
    INVALID_FILTER_MESSAGE,
    INVALID_ID_MESSAGE,
    INVALID_STATUS_MESSAGE,
    is_valid_json,
    sanitize_data,
    validate_id,
    validate_status_filter,
    validate_task_data,
)


@pytest.mark.parametrize("data", [{}, {"title": None}, {"title": ""}, {"title": "   "}])
def test_create_requires_title(data: dict[str, object]) -> None:
    assert validate_task_data(data) == {"title": "Title is required"}


def test_title_length_boundary() -> None:
    assert validate_task_data({"title": "a" * 255}) == {}
    assert validate_task_data({"title": "a" * 256}) == {
        "title": "Title must not exceed 255 characters"
    }


def test_update_only_checks_present_title() -> None:
    assert validate_task_data({}, is_update=True) == {}
    assert validate_task_data({"status": "completed"}, is_update=True) == {}


@pytest.mark.parametrize("title", ["", "  ", None])
def test_update_blank_title_has_its_own_message(title: object) -> None:
    errors = validate_task_data({"title": title}, is_update=True)
    assert errors == {"title": "Title cannot be empty"}


def test_non_string_title_is_rejected() -> None:
    assert validate_task_data({"title": 42}) == {"title": "Title must be a string"}


@pytest.mark.parametrize("is_update", [False, True])
def test_description_and_status_checked_in_both_modes(is_update: bool) -> None:
    errors = validate_task_data(
        {"title": "ok", "description": "d" * 1001, "status": "archived"},
        is_update=is_update,
    )
    assert errors == {
        "description": "Description must not exceed 1000 characters",
        "status": INVALID_STATUS_MESSAGE,
    }


def test_optional_fields_may_be_absent_or_null() -> None:
    assert validate_task_data({"title": "ok"}) == {}
    assert validate_task_data({"title": "ok", "description": None, "status": None}) == {}
    assert validate_task_data({"title": "ok", "description": "d" * 1000}) == {}


def test_each_call_starts_with_fresh_errors() -> None:
    assert validate_task_data({}) == {"title": "Title is required"}
    assert validate_task_data({"title": "fine"}) == {}


@pytest.mark.parametrize("value", [1, 42, "7", " 7", "7.0", "1e2", "9223372036854775807", 2**63 - 1])
def test_validate_id_accepts_positive_numbers(value: object) -> None:
    assert validate_id(value) is None


@pytest.mark.parametrize(
    "value",
    [0, -3, "0", "-1", "abc", "", None, True, "nan", "inf", "1_0", "\u0661", "\uff17"],
)
def test_validate_id_rejects_everything_else(value: object) -> None:
    assert validate_id(value) == INVALID_ID_MESSAGE


@pytest.mark.parametrize("status", [None, "", "   ", "pending", "in-progress", "completed"])
def test_status_filter_accepts_blank_or_known(status: str | None) -> None:
    assert validate_status_filter(status) is None


@pytest.mark.parametrize("status", ["bogus", "Pending", "done"])
def test_status_filter_rejects_unknown(status: str) -> None:
    assert validate_status_filter(status) == INVALID_FILTER_MESSAGE


@pytest.mark.parametrize("text", ['{"a": 1}', "[1, 2]", '"x"', "5", "null", "true"])
def test_is_valid_json_accepts_any_json_value(text: str) -> None:
    assert is_valid_json(text) is True


@pytest.mark.parametrize("text", ["{bad", "", "NaN", "{'a': 1}", '{"a": 1'])
def test_is_valid_json_rejects_malformed(text: str) -> None:
    assert is_valid_json(text) is False


def test_sanitize_trims_strings_and_returns_copy() -> None:
    original = {"title": "  Ship it \n", "count": 3, "description": None, "tags": [" a "]}
    cleaned = sanitize_data(original)

    assert cleaned == {"title": "Ship it", "count": 3, "description": None, "tags": [" a "]}
    assert original["title"] == "  Ship it \n"


@pytest.mark.parametrize("value", [2**63, "9223372036854775808", "99999999999999999999", "1e30"])
def test_validate_id_rejects_ids_beyond_64_bit_keys(value: object) -> None:
    assert validate_id(value) == INVALID_ID_MESSAGE
