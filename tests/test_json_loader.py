import json
from pathlib import Path

import pytest

from caseforge.domain.exceptions import ValidationError
from caseforge.loaders import (
    dump_accounts,
    dump_catalog,
    load_catalog_from_json,
    parse_accounts,
    parse_catalog_dict,
    validate_catalog_dict,
    validate_catalog_file,
)
from caseforge.storage.base import Account
from caseforge.testing import loaded_app


def skin_catalog(**overrides):
    case = {
        "id": "skins",
        "name": "Skins",
        "price": 250,
        "xpReward": 15,
        "items": [
            {
                "id": "knife",
                "name": "Knife",
                "rarity": "gold",
                "chance": 40,
                "value": 1000,
                "image": "knife.png",
                "variations": [
                    {"name": "Fade", "chance": 70, "price": 4000, "image": "fade.png"},
                    {"name": "Doppler", "chance": 30, "price": 0},
                ],
            },
            {"id": "pistol", "name": "Pistol", "rarity": "blue", "chance": 60, "value": 20},
        ],
    }
    case.update(overrides)
    return {"cases": [case]}


def test_parse_catalog_dict_reads_variations_and_images():
    definition = parse_catalog_dict(skin_catalog())
    [case] = definition.cases
    assert (case.case_id, case.price, case.xp_reward) == ("skins", 250, 15)
    knife = case.get_item("knife")
    assert knife.image == "knife.png"
    assert [var.name for var in knife.variations] == ["Fade", "Doppler"]
    assert knife.variations[1].price == 0
    assert case.get_item("pistol").variations == ()


def test_validate_catalog_dict_reports_shape_errors():
    assert validate_catalog_dict({}) == ["Catalog must contain non-empty 'cases' array."]
    errors = validate_catalog_dict(
        skin_catalog(
            price=-1,
            items=[{"id": "x", "rarity": "mythic", "chance": 100, "value": "cheap"}],
        )
    )
    assert any("invalid 'price'" in err for err in errors)
    assert any("invalid rarity 'mythic'" in err for err in errors)
    assert any("invalid 'value'" in err for err in errors)


def test_validate_catalog_dict_checks_weights_with_tolerance():
    data = skin_catalog()
    data["cases"][0]["items"][1]["chance"] = 59.95
    assert validate_catalog_dict(data) == []
    data["cases"][0]["items"][1]["chance"] = 59.5
    [error] = validate_catalog_dict(data)
    assert "do not sum to 100" in error

    data = skin_catalog()
    data["cases"][0]["items"][0]["variations"][1]["chance"] = 20
    assert any("variation weights" in err for err in validate_catalog_dict(data))


def test_parse_catalog_dict_rejects_duplicates():
    data = skin_catalog()
    data["cases"].append(dict(data["cases"][0]))
    with pytest.raises(ValidationError) as excinfo:
        parse_catalog_dict(data)
    assert any("defined multiple times" in err for err in excinfo.value.errors)


@pytest.mark.asyncio()
async def test_load_catalog_from_json_upserts_or_replaces(tmp_path: Path):
    json_path = tmp_path / "catalog.json"
    json_path.write_text(json.dumps(skin_catalog()), encoding="utf-8")
    assert validate_catalog_file(json_path) == []

    app = await loaded_app()
    await load_catalog_from_json(app, json_path)
    assert {case.case_id for case in app.catalog.all()} == {"basic_case", "skins"}

    await load_catalog_from_json(app, json_path, replace=True)
    assert [case.case_id for case in app.catalog.all()] == ["skins"]


def test_catalog_export_parses_back():
    definition = parse_catalog_dict(skin_catalog())
    exported = dump_catalog(definition.cases)
    assert parse_catalog_dict(exported).cases == definition.cases


def test_parse_accounts_validates_registry():
    exported = dump_accounts([Account(account_id=1, balance=10), Account(account_id=2, balance=0)])
    assert [account.account_id for account in parse_accounts(exported)] == [1, 2]

    exported["accounts"].append({"accountId": 1, "balance": -5})
    with pytest.raises(ValidationError) as excinfo:
        parse_accounts(exported)
    assert len(excinfo.value.errors) == 2

    with pytest.raises(ValidationError):
        parse_accounts({"users": []})
