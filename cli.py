# cli.py
import argparse
import asyncio
import json
import sys
from pathlib import Path

print("[CLI] Booting...")

from dotenv import load_dotenv
_loaded = load_dotenv()
print(f"[CLI] .env loaded: {_loaded}")

from radar.chains import CHAINS, ALIASES
from radar.core.analyze import analyze_token
from radar.core.context import build_context
from radar.errors import RadarError
from radar.utils.extract import extract_contract_addresses
from radar.utils.format import format_number, format_percent, score_label, truncate_address

print("[CLI] Imports OK")

LEVEL_MARK = {"safe": "✅", "warning": "⚠️ ", "danger": "❗"}
FLAG_MARK = {"critical": "🚨", "warning": "⚠️ ", "info": "ℹ️ "}


def print_record(rec: dict):
    name = rec.get("token_symbol") or rec.get("token_name") or truncate_address(rec.get("address"))
    print(f"🔹 {name} on {rec.get('chain_name', rec.get('chain'))}  ({rec.get('address')})")
    print(f"   Sources: {', '.join(rec.get('sources') or []) or 'n/a'}")
    print(f"   Price ${format_number(rec.get('price_usd'))}  Liquidity ${format_number(rec.get('liquidity'))}  "
          f"Vol24h ${format_number(rec.get('volume_24h'))}  Holders {rec.get('holder_count', 'n/a')}")
    print(f"   Taxes buy {format_percent(rec.get('buy_tax'))} / sell {format_percent(rec.get('sell_tax'))}")

    breakdown = rec.get("breakdown") or {}
    if breakdown:
        print("   Breakdown: " + ", ".join(f"{k}={v}" for k, v in breakdown.items()))
    for flag in rec.get("flags") or []:
        print(f"   {FLAG_MARK.get(flag.get('type'), '-')} {flag.get('message')}")

    score = rec.get("score")
    print(f"🧮 Safety Score: {score}/100  {LEVEL_MARK.get(rec.get('risk_level'), '-')} {score_label(score).upper()}")


def collect_targets(args) -> list:
    """[(address, chain)] from --address, --text or --file."""
    if args.address:
        return [(args.address, args.chain)]
    text = args.text
    if args.file:
        p = Path(args.file)
        if not p.exists():
            print(f"[CLI] ❌ Input file not found: {args.file}", file=sys.stderr)
            sys.exit(1)
        text = p.read_text(encoding="utf-8", errors="replace")
    found = extract_contract_addresses(text or "")
    print(f"[CLI] Extracted {len(found)} address(es)")
    # extracted EVM addresses default to Ethereum unless --chain says otherwise
    return [(f["address"], args.chain if (args.chain and f["type"] == "evm") else f["chain"]) for f in found]


async def run(args) -> list:
    ctx = build_context()
    out = []
    try:
        for address, chain in collect_targets(args):
            try:
                record, cached = await analyze_token(ctx, chain, address, use_cache=not args.no_cache)
            except RadarError as e:
                print(f"[CLI] analyze_token FAIL {address} -> {e}")
                out.append({"address": address, "chain": chain, "error": str(e)})
                continue
            out.append({**record.to_dict(), "cached": cached})
    finally:
        ctx.close()
    return out


def main(argv=None):
    print("[CLI] Parsing arguments...")
    chains = sorted(set(CHAINS) | set(ALIASES))
    p = argparse.ArgumentParser(description="Token Rug Radar CLI")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--address", help="Token contract address (EVM 0x... or Solana mint)")
    src.add_argument("--text", help="Free text; every contract address in it is scanned")
    src.add_argument("--file", help="Text file; every contract address in it is scanned")
    p.add_argument("--chain", default=None, choices=chains,
                   help="Chain id or alias (default: detected from the address)")
    p.add_argument("--no-cache", action="store_true", help="Force a fresh scan")
    p.add_argument("--json", action="store_true", help="Print JSON only")
    args = p.parse_args(argv)
    print(f"[CLI] Args -> chain={args.chain} address={args.address} file={args.file} json={args.json}")

    results = asyncio.run(run(args))
    if not results:
        print("ℹ️ No contract addresses found.")
        return 1

    if args.json:
        print(json.dumps(results, indent=2, default=str))
        return 0

    for rec in results:
        if rec.get("error"):
            print(f"❌ {rec['address']}: {rec['error']}")
        else:
            print_record(rec)
    print("[CLI] Done.")
    return 0 if any(not r.get("error") for r in results) else 2


if __name__ == "__main__":
    sys.exit(main())
