import re

import pytest

from resumescout.pipeline.contact_options import (
    EMAIL_ICON_IDS,
    PHONE_ICON_IDS,
    build_contact_options,
    first_candidate,
    normalize_text,
)
from resumescout.schemas import ContactKind


def test_normalize_text():
    assert normalize_text("  Visualizar   TELEFONE ") == "visualizar telefone"
    assert normalize_text("Contato telefônico") == "contato telefonico"
    assert normalize_text(None) == ""
    assert normalize_text(42) == ""


def test_phone_options():
    opts = build_contact_options(ContactKind.PHONE)

    assert opts.kind == ContactKind.PHONE
    assert opts.icon_test_ids == PHONE_ICON_IDS
    assert "ver telefone" in opts.label_phrases
    assert opts.icon_test_ids[0] == "SmartphoneIcon"
    assert re.search(opts.placeholder_pattern, "ver telefone")
    assert re.search(opts.value_pattern, "(41) 99999-1234")
    assert not re.search(opts.value_pattern, "Ver telefone")


def test_email_options_from_string_kind():
    opts = build_contact_options("email")

    assert opts.kind == ContactKind.EMAIL
    assert opts.icon_test_ids == EMAIL_ICON_IDS
    assert re.search(opts.value_pattern, "Ana.Souza@Example.com.br", re.IGNORECASE)
    assert not re.search(opts.value_pattern, "ver e-mail", re.IGNORECASE)


def test_options_are_deterministic():
    assert build_contact_options("phone") == build_contact_options(ContactKind.PHONE)


def test_js_arg_is_plain_data():
    arg = build_contact_options("phone").to_js_arg()

    assert arg["kind"] == "phone"
    assert isinstance(arg["iconTestIds"], list)
    assert isinstance(arg["labelPhrases"], list)
    assert arg["valuePattern"]


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        build_contact_options("fax")


@pytest.mark.parametrize("raw,expected", [
    ("(41) 99999-1234, (41) 3333-4444", "(41) 99999-1234"),
    ("  a@b.com  ", "a@b.com"),
    (" , a@b.com", None),
    ("", None),
    (None, None),
])
def test_first_candidate(raw, expected):
    assert first_candidate(raw) == expected
