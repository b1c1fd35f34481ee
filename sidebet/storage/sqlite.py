from __future__ import annotations

import json
import sqlite3
from decimal import Decimal
from pathlib import Path

from sidebet.adapters.store import BetStore, UserStore
from sidebet.core.clock import iso, parse_iso
from sidebet.core.types import Bet, BetOption, FireBack, Payout, PlacedBet, User


def _dec(v: str | None) -> Decimal | None:
    return Decimal(v) if v is not None else None


def _options_to_json(options: dict[str, BetOption]) -> str:
    return json.dumps(
        [
            {
                "key": o.key,
                "label": o.label,
                "initial_odds": str(o.initial_odds),
                "odds": str(o.odds),
                "total_wagered": str(o.total_wagered),
            }
            for o in options.values()
        ]
    )


def _options_from_json(raw: str) -> dict[str, BetOption]:
    out: dict[str, BetOption] = {}
    for o in json.loads(raw):
        out[o["key"]] = BetOption(
            key=o["key"],
            label=o["label"],
            initial_odds=Decimal(o["initial_odds"]),
            odds=Decimal(o["odds"]),
            total_wagered=Decimal(o["total_wagered"]),
        )
    return out


class SqliteStore(BetStore, UserStore):
    """File-backed store. Money and odds are stored as text so Decimals survive the trip."""

    def __init__(self, path: str = "sidebet.db"):
        self.path = Path(path)
        self._init()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                create table if not exists users (
                  id text primary key,
                  username text,
                  wallet_balance text not null
                );
                """
            )
            conn.execute(
                """
                create table if not exists credits (
                  ref text primary key,
                  user_id text not null
                );
                """
            )
            conn.execute(
                """
                create table if not exists bets (
                  id text primary key,
                  creator_id text not null,
                  description text not null,
                  options text not null,
                  closing_time text not null,
                  created_at text not null,
                  status text not null,
                  visibility text not null,
                  winning_option text,
                  challenged_users text not null,
                  minimum_wager text
                );
                """
            )
            conn.execute(
                """
                create table if not exists placed_bets (
                  id text primary key,
                  user_id text not null,
                  bet_id text not null,
                  selected_option text not null,
                  amount text not null,
                  potential_winnings text not null,
                  placed_at text not null,
                  is_partial integer not null
                );
                """
            )
            conn.execute(
                """
                create table if not exists fire_backs (
                  id text primary key,
                  user_id text not null,
                  bet_id text not null,
                  new_wager text not null,
                  status text not null,
                  created_at text not null,
                  responded_at text
                );
                """
            )
            conn.execute(
                """
                create table if not exists payouts (
                  bet_id text not null,
                  placed_bet_id text not null,
                  user_id text not null,
                  amount text not null,
                  winning_option text not null,
                  paid_at text not null,
                  primary key (bet_id, placed_bet_id)
                );
                """
            )

    # users

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("select * from users where id=?", (user_id,)).fetchone()
        if not row:
            return None
        return User(id=row["id"], username=row["username"], wallet_balance=Decimal(row["wallet_balance"]))

    def save_user(self, user: User, credit_ref: str | None = None) -> None:
        # one transaction: the balance and the credit marker land together or not at all
        with self._connect() as conn:
            # upsert keeps the rowid, so list_users stays in signup order
            conn.execute(
                """
                insert into users values (?,?,?)
                on conflict(id) do update set username=excluded.username, wallet_balance=excluded.wallet_balance
                """,
                (user.id, user.username, str(user.wallet_balance)),
            )
            if credit_ref is not None:
                conn.execute("insert into credits values (?,?)", (credit_ref, user.id))

    def credit_applied(self, credit_ref: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("select 1 from credits where ref=?", (credit_ref,)).fetchone()
        return row is not None

    def list_users(self) -> list[User]:
        with self._connect() as conn:
            rows = conn.execute("select * from users order by rowid").fetchall()
        return [User(id=r["id"], username=r["username"], wallet_balance=Decimal(r["wallet_balance"])) for r in rows]

    # bets

    def _row_to_bet(self, r: sqlite3.Row) -> Bet:
        return Bet(
            id=r["id"],
            creator_id=r["creator_id"],
            description=r["description"],
            options=_options_from_json(r["options"]),
            closing_time=parse_iso(r["closing_time"]),
            created_at=parse_iso(r["created_at"]),
            status=r["status"],
            visibility=r["visibility"],
            winning_option=r["winning_option"],
            challenged_users=json.loads(r["challenged_users"]),
            minimum_wager=_dec(r["minimum_wager"]),
        )

    def get_bet(self, bet_id: str) -> Bet | None:
        with self._connect() as conn:
            row = conn.execute("select * from bets where id=?", (bet_id,)).fetchone()
        return self._row_to_bet(row) if row else None

    def save_bet(self, bet: Bet) -> None:
        with self._connect() as conn:
            conn.execute(
                "insert or replace into bets values (?,?,?,?,?,?,?,?,?,?,?)",
                (
                    bet.id,
                    bet.creator_id,
                    bet.description,
                    _options_to_json(bet.options),
                    iso(bet.closing_time),
                    iso(bet.created_at),
                    bet.status,
                    bet.visibility,
                    bet.winning_option,
                    json.dumps(list(bet.challenged_users)),
                    str(bet.minimum_wager) if bet.minimum_wager is not None else None,
                ),
            )

    def delete_bet(self, bet_id: str) -> None:
        with self._connect() as conn:
            conn.execute("delete from bets where id=?", (bet_id,))

    def list_bets(self) -> list[Bet]:
        with self._connect() as conn:
            rows = conn.execute("select * from bets order by created_at").fetchall()
        return [self._row_to_bet(r) for r in rows]

    # placed bets

    def _row_to_placed(self, r: sqlite3.Row) -> PlacedBet:
        return PlacedBet(
            id=r["id"],
            user_id=r["user_id"],
            bet_id=r["bet_id"],
            selected_option=r["selected_option"],
            amount=Decimal(r["amount"]),
            potential_winnings=Decimal(r["potential_winnings"]),
            placed_at=parse_iso(r["placed_at"]),
            is_partial=bool(r["is_partial"]),
        )

    def add_placed_bet(self, placed: PlacedBet) -> None:
        with self._connect() as conn:
            conn.execute(
                "insert into placed_bets values (?,?,?,?,?,?,?,?)",
                (
                    placed.id,
                    placed.user_id,
                    placed.bet_id,
                    placed.selected_option,
                    str(placed.amount),
                    str(placed.potential_winnings),
                    iso(placed.placed_at),
                    int(placed.is_partial),
                ),
            )

    def placed_bets_for_bet(self, bet_id: str) -> list[PlacedBet]:
        with self._connect() as conn:
            rows = conn.execute("select * from placed_bets where bet_id=? order by rowid", (bet_id,)).fetchall()
        return [self._row_to_placed(r) for r in rows]

    def placed_bets_for_user(self, user_id: str) -> list[PlacedBet]:
        with self._connect() as conn:
            rows = conn.execute("select * from placed_bets where user_id=? order by rowid", (user_id,)).fetchall()
        return [self._row_to_placed(r) for r in rows]

    # fire backs

    def _row_to_fire_back(self, r: sqlite3.Row) -> FireBack:
        return FireBack(
            id=r["id"],
            user_id=r["user_id"],
            bet_id=r["bet_id"],
            new_wager=Decimal(r["new_wager"]),
            status=r["status"],
            created_at=parse_iso(r["created_at"]),
            responded_at=parse_iso(r["responded_at"]) if r["responded_at"] else None,
        )

    def get_fire_back(self, fire_back_id: str) -> FireBack | None:
        with self._connect() as conn:
            row = conn.execute("select * from fire_backs where id=?", (fire_back_id,)).fetchone()
        return self._row_to_fire_back(row) if row else None

    def save_fire_back(self, fire_back: FireBack) -> None:
        with self._connect() as conn:
            conn.execute(
                "insert or replace into fire_backs values (?,?,?,?,?,?,?)",
                (
                    fire_back.id,
                    fire_back.user_id,
                    fire_back.bet_id,
                    str(fire_back.new_wager),
                    fire_back.status,
                    iso(fire_back.created_at),
                    iso(fire_back.responded_at) if fire_back.responded_at else None,
                ),
            )

    def fire_backs_for_bet(self, bet_id: str) -> list[FireBack]:
        with self._connect() as conn:
            rows = conn.execute("select * from fire_backs where bet_id=? order by created_at", (bet_id,)).fetchall()
        return [self._row_to_fire_back(r) for r in rows]

    # payouts

    def add_payout(self, payout: Payout) -> None:
        with self._connect() as conn:
            conn.execute(
                "insert into payouts values (?,?,?,?,?,?)",
                (
                    payout.bet_id,
                    payout.placed_bet_id,
                    payout.user_id,
                    str(payout.amount),
                    payout.winning_option,
                    iso(payout.paid_at),
                ),
            )

    def payouts_for_bet(self, bet_id: str) -> list[Payout]:
        with self._connect() as conn:
            rows = conn.execute("select * from payouts where bet_id=? order by rowid", (bet_id,)).fetchall()
        return [
            Payout(
                bet_id=r["bet_id"],
                placed_bet_id=r["placed_bet_id"],
                user_id=r["user_id"],
                amount=Decimal(r["amount"]),
                winning_option=r["winning_option"],
                paid_at=parse_iso(r["paid_at"]),
            )
            for r in rows
        ]
