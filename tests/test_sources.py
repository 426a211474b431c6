import pytest

from radar.core.fetch import fetch_all_token_data, sources_for_chain
from radar.core.merge import FieldRule, TokenData, merge_sources
from radar.errors import MergeIncomplete, NetworkError
from radar.utils.goplus import parse_goplus
from radar.utils.honeypot import parse_honeypot
from radar.utils.market import parse_dexscreener
from radar.utils.rugcheck import parse_rugcheck

from conftest import (
    EVM_ADDR,
    EVM_ADDR_MIXED,
    SOL_ADDR,
    FakeHttp,
    dex_payload,
    evm_responses,
    goplus_payload,
    honeypot_payload,
    rugcheck_payload,
)


# --- parsers

def test_dexscreener_uses_deepest_pair():
    parsed = parse_dexscreener(dex_payload())
    assert parsed["liquidity"] == 200_000
    assert parsed["price_usd"] == 1.25
    assert parsed["dex_id"] == "uniswap"
    assert parsed["tx_count_24h"] == 500
    assert parsed["buys_24h"] == 300


@pytest.mark.parametrize("data", [None, {}, {"pairs": None}, {"pairs": []}, "oops"])
def test_dexscreener_without_pairs(data):
    assert parse_dexscreener(data) is None


def test_goplus_converts_ratios_to_percent():
    parsed = parse_goplus(goplus_payload(buy_tax="0.05", sell_tax="0.1"), EVM_ADDR)
    assert parsed["buy_tax"] == pytest.approx(5.0)
    assert parsed["sell_tax"] == pytest.approx(10.0)
    assert parsed["top10_holders_percent"] == pytest.approx(15.0)
    assert parsed["ownership_renounced"] is True
    assert parsed["is_verified"] is True
    assert parsed["can_mint"] is False


def test_goplus_looks_up_result_case_insensitively():
    assert parse_goplus(goplus_payload(), EVM_ADDR_MIXED)["token_symbol"] == "SAFE"


def test_goplus_owner_and_flags():
    parsed = parse_goplus(goplus_payload(owner_address="0xdead", is_mintable="1", is_in_dex="0"), EVM_ADDR)
    assert parsed["ownership_renounced"] is False
    assert parsed["can_mint"] is True
    assert parsed["can_blacklist"] is True


def test_goplus_rejects_error_codes_and_missing_tokens():
    assert parse_goplus({"code": 2, "result": {}}, EVM_ADDR) is None
    assert parse_goplus(goplus_payload(address="0x" + "cd" * 20), EVM_ADDR) is None


def test_honeypot_parse():
    parsed = parse_honeypot(honeypot_payload(is_honeypot=True, sell_tax=99, risk="High"))
    assert parsed["is_honeypot"] is True
    assert parsed["sell_tax"] == 99
    assert parsed["honeypot_risk"] == "high"
    assert parsed["holder_count"] == 5000
    assert parse_honeypot({"summary": {"risk": None}})["honeypot_risk"] == "unknown"
    assert parse_honeypot({}) is None


def test_rugcheck_parse():
    parsed = parse_rugcheck(rugcheck_payload(score=40, honeypot=True))
    assert parsed["is_honeypot"] is True
    assert parsed["honeypot_risk"] == "high"
    assert parsed["ownership_renounced"] is True
    assert parsed["liquidity_locked"] is True
    assert parsed["risks"] == [{"name": "Honeypot", "level": "danger"}]
    assert parse_rugcheck(rugcheck_payload(score=85))["honeypot_risk"] == "low"
    assert parse_rugcheck({"error": "not found"}) is None


# --- merge

def test_primary_security_source_wins_even_when_false():
    merged = merge_sources({
        "goplus": {"is_honeypot": False},
        "honeypot": {"is_honeypot": True, "honeypot_risk": "high"},
    })
    assert merged.is_honeypot is False
    assert merged.honeypot_risk == "high"


def test_zero_does_not_block_a_later_real_value():
    merged = merge_sources({
        "dexscreener": {"token_symbol": "", "liquidity": 0.0},
        "goplus": {"token_symbol": "GP", "buy_tax": 0.0, "holder_count": 0},
        "honeypot": {"buy_tax": 4.0, "holder_count": 900},
        "rugcheck": {"liquidity": 80_000},
    })
    assert merged.token_symbol == "GP"
    assert merged.buy_tax == 4.0
    assert merged.holder_count == 900
    assert merged.liquidity == 80_000


def test_zero_survives_when_nobody_has_better():
    merged = merge_sources({"goplus": {"buy_tax": 0.0}, "honeypot": {"buy_tax": 0.0}})
    assert merged.buy_tax == 0.0
    assert merged.to_dict() == {"buy_tax": 0.0}


def test_market_fields_only_come_from_dexscreener():
    merged = merge_sources({"goplus": {"price_usd": 9.0}, "dexscreener": {"price_usd": 1.0}})
    assert merged.price_usd == 1.0
    assert merge_sources({"goplus": {"price_usd": 9.0}}).price_usd is None


def test_unknown_rule_field_is_an_error():
    with pytest.raises(KeyError):
        merge_sources({}, [FieldRule("nope", ("goplus",))])


def test_to_dict_drops_absent_values():
    assert TokenData(token_name="x", risks=[]).to_dict() == {"token_name": "x"}


# --- fan-out

def test_source_routing():
    assert [n for n, _ in sources_for_chain("solana")] == ["dexscreener", "rugcheck"]
    assert [n for n, _ in sources_for_chain("56")] == ["dexscreener", "goplus", "honeypot"]


@pytest.mark.asyncio
async def test_fetch_merges_all_evm_sources():
    http = FakeHttp(evm_responses())
    result = await fetch_all_token_data(http, EVM_ADDR, "1")
    assert result.sources == ["dexscreener", "goplus", "honeypot"]
    assert result.errors == {}
    assert result.data.liquidity == 200_000
    assert result.data.honeypot_risk == "low"
    assert result.data.ownership_renounced is True
    assert "rugcheck" not in http.sources_called()


@pytest.mark.asyncio
async def test_one_failing_source_does_not_abort_the_rest():
    http = FakeHttp(evm_responses(goplus=NetworkError("HTTP 503", status=503)))
    result = await fetch_all_token_data(http, EVM_ADDR, "1")
    assert result.sources == ["dexscreener", "honeypot"]
    assert "goplus" in result.errors
    assert result.data.is_honeypot is False


@pytest.mark.asyncio
async def test_all_sources_failing_raises_merge_incomplete():
    http = FakeHttp({
        "dexscreener": NetworkError("Timeout after 15s", timeout=True),
        "goplus": NetworkError("HTTP 500", status=500),
        "honeypot": {},
    })
    with pytest.raises(MergeIncomplete) as info:
        await fetch_all_token_data(http, EVM_ADDR, "1")
    assert set(info.value.errors) == {"dexscreener", "goplus"}
    assert str(info.value) == "Failed to fetch token data"


@pytest.mark.asyncio
async def test_solana_uses_rugcheck():
    http = FakeHttp({"dexscreener": {"pairs": []}, "rugcheck": rugcheck_payload()})
    result = await fetch_all_token_data(http, SOL_ADDR, "solana")
    assert sorted(http.sources_called()) == ["dexscreener", "rugcheck"]
    assert result.sources == ["rugcheck"]
    assert result.data.token_symbol == "SOLT"
    assert result.data.liquidity == 80_000
    assert result.data.top_holder_percent == 8.0
    assert result.data.rugcheck_score == 85
