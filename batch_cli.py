# batch_cli.py
import argparse, asyncio, csv, json, sys
from pathlib import Path

print("[BATCH] Booting...")

from dotenv import load_dotenv
_loaded = load_dotenv()
print(f"[BATCH] .env loaded: {_loaded}")

from radar.chains import ALIASES, CHAINS
from radar.core.analyze import analyze_token
from radar.core.context import build_context
from radar.errors import RadarError

print("[BATCH] Imports OK")

FIELDNAMES = ["chain", "address", "token_symbol", "score", "risk_level", "is_honeypot", "buy_tax", "sell_tax",
              "liquidity", "holder_count", "top_holder_percent", "critical_flags", "sources", "error"]


def load_addresses(path: str) -> list:
    print(f"[BATCH] Loading addresses from: {path}")
    p = Path(path)
    if not p.exists():
        print(f"[BATCH] ❌ Input file not found: {path}", file=sys.stderr)
        sys.exit(1)
    addrs = []
    with p.open(encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            addrs.append(s)
    print(f"[BATCH] Loaded {len(addrs)} addresses")
    if addrs:
        print("[BATCH] First 3:", addrs[:3])
    return addrs


def flatten_result(rec: dict) -> dict:
    critical = [f.get("message") for f in rec.get("flags") or [] if f.get("type") == "critical"]
    return {
        "chain": rec.get("chain"),
        "address": rec.get("address"),
        "token_symbol": rec.get("token_symbol", ""),
        "score": rec.get("score"),
        "risk_level": rec.get("risk_level"),
        "is_honeypot": rec.get("is_honeypot", ""),
        "buy_tax": rec.get("buy_tax", ""),
        "sell_tax": rec.get("sell_tax", ""),
        "liquidity": rec.get("liquidity", ""),
        "holder_count": rec.get("holder_count", ""),
        "top_holder_percent": rec.get("top_holder_percent", ""),
        "critical_flags": ";".join(critical),
        "sources": ";".join(rec.get("sources") or []),
        "error": "",
    }


def error_row(chain, address: str, err: str) -> dict:
    row = {k: "" for k in FIELDNAMES}
    row.update({"chain": chain or "", "address": address, "error": err})
    return row


async def scan_all(addresses: list, chain, concurrency: int, use_cache: bool):
    ctx = build_context()
    gate = asyncio.Semaphore(max(1, concurrency))

    async def work(addr: str):
        async with gate:
            print(f"[BATCH][WORK] Start {addr}")
            try:
                record, _ = await analyze_token(ctx, chain, addr, use_cache=use_cache)
            except RadarError as e:
                print(f"[BATCH][WORK] analyze_token FAIL {addr} -> {e}")
                return error_row(chain, addr, str(e)), {"chain": chain, "address": addr, "error": str(e)}
            rec = record.to_dict()
            print(f"[BATCH][WORK] OK {addr} score={rec['score']} level={rec['risk_level']}")
            return flatten_result(rec), rec

    try:
        return await asyncio.gather(*(work(a) for a in addresses))
    finally:
        ctx.close()


def main(argv=None):
    print("[BATCH] Parsing arguments...")
    ap = argparse.ArgumentParser(description="Token Rug Radar - Batch Scanner")
    ap.add_argument("--chain", default=None, choices=sorted(set(CHAINS) | set(ALIASES)),
                    help="Chain for every address (default: detected per address)")
    ap.add_argument("--infile", required=True, help="Path to text file with one address per line")
    ap.add_argument("--out-csv", default="batch_scan.csv", help="CSV output path")
    ap.add_argument("--out-json", default="batch_scan.json", help="JSON output path")
    ap.add_argument("--concurrency", type=int, default=2, help="Parallel scans (the shared rate limiter still applies)")
    ap.add_argument("--no-cache", action="store_true", help="Force fresh scans")
    args = ap.parse_args(argv)
    print(f"[BATCH] Args -> chain={args.chain} infile={args.infile} out_csv={args.out_csv} "
          f"out_json={args.out_json} conc={args.concurrency}")

    addresses = load_addresses(args.infile)
    print(f"[BATCH] Scanning {len(addresses)} addresses with concurrency={args.concurrency}")
    pairs = asyncio.run(scan_all(addresses, args.chain, args.concurrency, not args.no_cache))
    rows = [row for row, _ in pairs]
    json_out = [rec for _, rec in pairs]
    print("[BATCH] All tasks completed.")

    try:
        with open(args.out_csv, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=FIELDNAMES)
            w.writeheader()
            w.writerows(rows)
        print(f"[BATCH] Wrote CSV -> {args.out_csv}")
    except OSError as e:
        print("[BATCH] CSV write FAIL:", e)

    try:
        with open(args.out_json, "w", encoding="utf-8") as f:
            json.dump(json_out, f, indent=2)
        print(f"[BATCH] Wrote JSON -> {args.out_json}")
    except OSError as e:
        print("[BATCH] JSON write FAIL:", e)

    print("✅ Done. CSV →", args.out_csv, " JSON →", args.out_json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
