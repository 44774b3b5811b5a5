import json

import pytest
from pydantic import ValidationError

from core.lenders import get_lender, load_lenders, load_program_tiers
from habitasim.models import AgeBandTable, AgeFloorTable


def test_default_lenders_load():
    lenders = load_lenders()
    assert set(lenders) == {"bb", "bradesco", "brb", "caixa", "inter", "itau", "santander"}
    for lender_id, profile in lenders.items():
        assert profile.id == lender_id
        assert 0 < profile.max_financing_ratio <= 1
        assert profile.dfi_rate("residential") is not None


def test_program_tiers_injected_by_name():
    lenders = load_lenders()
    assert [t.label for t in lenders["caixa"].subsidized_program_tiers] == [
        "Faixa 1",
        "Faixa 2",
        "Faixa 3",
        "Faixa 4",
    ]
    assert lenders["bradesco"].subsidized_program_tiers is None


def test_both_mip_table_shapes_present():
    lenders = load_lenders()
    assert isinstance(lenders["bb"].insurance.mip, AgeFloorTable)
    assert isinstance(lenders["caixa"].insurance.mip, AgeBandTable)


def test_declared_capabilities():
    inter = get_lender("inter")
    assert inter.rate_for("SAC", "TR") is None
    assert inter.rate_for("SAC", "IPCA") == 9.50
    assert get_lender("bb").special_max_term_months == 360
    assert get_lender("caixa").rate_for("PRICE", "POUPANCA") is None
    assert get_lender("nope") is None


def _write(tmp_path, lenders, programs=None):
    (tmp_path / "lenders.json").write_text(json.dumps({"lenders": lenders}), encoding="utf-8")
    if programs is not None:
        (tmp_path / "programs.json").write_text(json.dumps({"programs": programs}), encoding="utf-8")
    return str(tmp_path)


def _entry(**overrides):
    entry = {
        "id": "x",
        "name": "X",
        "max_financing_ratio": 0.8,
        "rate_table": {"SAC": {"TR": 11.0}},
        "insurance": {"mip": {"kind": "floor", "rates": {"18": 0.01}}, "dfi": {"residential": 0.001}},
    }
    entry.update(overrides)
    return entry


def test_custom_directory_without_programs(tmp_path):
    data_dir = _write(tmp_path, [_entry()])
    assert load_program_tiers(data_dir) == {}
    assert list(load_lenders(data_dir)) == ["x"]
    assert get_lender("x", data_dir).name == "X"


def test_unknown_program_is_a_configuration_error(tmp_path):
    data_dir = _write(tmp_path, [_entry(subsidized_program="nope")], programs={})
    with pytest.raises(ValueError, match="unknown program"):
        load_lenders(data_dir)


def test_invalid_profile_rejected(tmp_path):
    data_dir = _write(tmp_path, [_entry(max_financing_ratio=1.5)])
    with pytest.raises(ValidationError):
        load_lenders(data_dir)


def test_unknown_mip_kind_rejected(tmp_path):
    bad = _entry(insurance={"mip": {"kind": "table", "rates": {}}, "dfi": {}})
    data_dir = _write(tmp_path, [bad])
    with pytest.raises(ValidationError):
        load_lenders(data_dir)


def test_callers_get_independent_copies():
    first = load_lenders()
    first.pop("caixa")
    first["fake"] = first["bb"]
    again = load_lenders()
    assert "caixa" in again
    assert "fake" not in again

    tiers = load_program_tiers()
    tiers["mcmv"].clear()
    assert len(load_program_tiers()["mcmv"]) == 4
