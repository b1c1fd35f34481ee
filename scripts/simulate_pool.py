from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

import typer
from rich.console import Console

from sidebet.core.errors import SideBetError
from sidebet.core.pricing import ZERO
from sidebet.engine import WagerEngine

console = Console()


@dataclass
class Tally:
    placed: int = 0
    rejected: int = 0
    staked: Decimal = ZERO


def stake_many(engine: WagerEngine, bet_id: str, user_id: str, keys: list[str], n: int, seed: int) -> Tally:
    rng = random.Random(seed)
    t = Tally()
    for _ in range(n):
        amount = Decimal(rng.randint(100, 2500)) / 100
        try:
            engine.place_bet(bet_id, user_id, rng.choice(keys), amount)
        except SideBetError:
            t.rejected += 1
            continue
        t.placed += 1
        t.staked += amount
    return t


def main(users: int = 12, stakes_per_user: int = 40, balance: str = "150.00", seed: int = 7):
    """Hammer one bet from many threads and check the books still balance."""
    engine = WagerEngine()
    engine.open_account("host", balance)
    ids = [f"u{i}" for i in range(users)]
    for uid in ids:
        engine.open_account(uid, balance)

    bet = engine.create_bet(
        "host",
        "Who wins the office bake-off?",
        ["Sam", "Priya", "Lee"],
        engine.clock.now() + timedelta(hours=1),
    )
    keys = list(bet.options)

    with ThreadPoolExecutor(max_workers=users) as pool:
        tallies = list(pool.map(lambda i: stake_many(engine, bet.id, ids[i], keys, stakes_per_user, seed + i), range(users)))

    final = engine.get_bet(bet.id)
    staked = sum((t.staked for t in tallies), ZERO)
    wallets = sum((u.wallet_balance for u in engine.list_users()), ZERO)
    start_total = Decimal(balance) * (users + 1)

    console.rule(f"{final.description} [{final.status}]")
    for o in final.options.values():
        console.log(f"{o.key}: ${o.total_wagered} @ {o.odds}x")
    console.log(f"placed={sum(t.placed for t in tallies)} rejected={sum(t.rejected for t in tallies)}")

    problems = []
    if final.pool_total() != staked:
        problems.append(f"pool ${final.pool_total()} != staked ${staked}")
    if wallets + staked != start_total:
        problems.append(f"wallets ${wallets} + pool ${staked} != ${start_total}")
    if any(u.wallet_balance < 0 for u in engine.list_users()):
        problems.append("negative wallet")
    if any(o.odds < engine.params.odds_floor for o in final.options.values() if o.total_wagered > 0):
        problems.append("odds below floor")

    for p in problems:
        console.log(f"[red]FAIL[/red] {p}")
    if not problems:
        console.log("[green]OK[/green] books balance")
    raise typer.Exit(code=1 if problems else 0)


if __name__ == "__main__":
    typer.run(main)
