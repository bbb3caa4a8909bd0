import pytest

from webcore import locales
from webcore.locales import (
    FieldError,
    ValidationErrors,
    get_trans,
    init_default_trans,
    init_id_trans,
)


@pytest.fixture(autouse=True)
def fresh_translator(monkeypatch):
    monkeypatch.setattr(locales, "_trans", None)


def test_get_trans_defaults_to_english():
    assert get_trans().locale == "en"


def test_init_id_trans_selects_indonesian():
    assert init_id_trans().locale == "id"
    assert get_trans().locale == "id"


def test_first_selection_is_kept():
    first = init_id_trans()
    assert init_default_trans() is first
    assert get_trans() is first


def test_default_selection_is_kept_for_id():
    first = init_default_trans()
    assert init_id_trans() is first


def test_english_required_message():
    assert init_default_trans().translate("required", "Name", "") == "Name is a required field"


def test_indonesian_required_message():
    assert init_id_trans().translate("required", "Name", "") == "Name wajib diisi"


def test_param_is_used():
    message = init_default_trans().translate("oneof", "Color", "red blue")
    assert "Color" in message
    assert "red blue" in message


def test_unknown_tag_raises():
    with pytest.raises(KeyError):
        get_trans().translate("no_such_rule", "Name", "")


def test_field_error_translates_known_tag():
    error = FieldError(field="Email", tag="email")
    translator = get_trans()
    assert error.translate(translator) == translator.translate("email", "Email", "")


def test_field_error_falls_back_to_raw_text():
    error = FieldError(field="Age", tag="custom", namespace="User.Age")
    text = error.translate(get_trans())
    assert text == str(error)
    assert "'User.Age'" in text
    assert "'custom'" in text


def test_validation_errors_iterate_in_order():
    first = FieldError(field="A", tag="required")
    second = FieldError(field="B", tag="email")
    errors = ValidationErrors([first, second])
    assert list(errors) == [first, second]
    assert len(errors) == 2
    assert str(errors).splitlines() == [str(first), str(second)]