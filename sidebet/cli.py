import logging
from datetime import datetime, timedelta, timezone

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sidebet.core.clock import ManualClock, parse_iso
from sidebet.core.errors import SideBetError
from sidebet.core.types import BET_STATUSES, Bet
from sidebet.demo import run_scenario, seed_demo
from sidebet.engine import WagerEngine
from sidebet.settings import settings

app = typer.Typer(no_args_is_help=True)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine events.")):
    level = "DEBUG" if verbose else settings.log_level
    logging.basicConfig(level=level, format="%(message)s", handlers=[RichHandler(console=console, show_path=False)])


def _engine() -> WagerEngine:
    return WagerEngine.from_settings()


def _fail(e: SideBetError) -> None:
    console.print(f"[red]{e.code}[/red]: {e}")
    raise typer.Exit(code=1)


def _bet_table(bet: Bet) -> Table:
    t = Table(title=f"{bet.id}  {bet.description}  [{bet.status}]")
    t.add_column("option")
    t.add_column("label")
    t.add_column("wagered", justify="right")
    t.add_column("odds", justify="right")
    for o in bet.options.values():
        winner = " *" if bet.winning_option == o.key else ""
        t.add_row(o.key + winner, o.label, f"${o.total_wagered}", f"{o.odds}x")
    return t


@app.command()
def seed():
    """Load demo friends and bets into the configured store."""
    engine = _engine()
    try:
        bets = seed_demo(engine)
    except SideBetError as e:
        _fail(e)
    console.log(f"Seeded {len(engine.list_users())} users and {len(bets)} bets into {settings.db_path}")


@app.command("open")
def open_account(
    user_id: str,
    name: str = typer.Option(None, help="Display name."),
    balance: str = typer.Option(None, help="Opening balance; defaults to SIDEBET_STARTING_BALANCE."),
):
    """Open a wallet for a new user."""
    try:
        opening = balance if balance is not None else settings.starting_balance
        user = _engine().open_account(user_id, opening, username=name)
    except SideBetError as e:
        _fail(e)
    console.log(f"Opened {user.id} with ${user.wallet_balance}")


@app.command()
def users():
    """List wallets."""
    t = Table(title="Wallets")
    t.add_column("user")
    t.add_column("name")
    t.add_column("balance", justify="right")
    for u in _engine().list_users():
        t.add_row(u.id, u.username or "", f"${u.wallet_balance}")
    console.print(t)


@app.command()
def bets(
    user: str = typer.Option(None, help="Only bets this user may see."),
    status: str = typer.Option(None, help=f"Only bets in this status: {', '.join(BET_STATUSES)}."),
):
    """List bets with live odds."""
    if status is not None and status not in BET_STATUSES:
        console.print(f"[red]unknown status[/red]: {status}")
        raise typer.Exit(code=1)
    engine = _engine()
    for bet in engine.bet_feed(user) if user else engine.list_bets():
        if status is None or bet.status == status:
            console.print(_bet_table(bet))


@app.command()
def show(bet_id: str):
    """Show one bet, its stakes and its fire backs."""
    engine = _engine()
    try:
        bet = engine.get_bet(bet_id)
    except SideBetError as e:
        _fail(e)
    console.print(_bet_table(bet))
    for pb in engine.placed_bets(bet_id):
        console.log(f"{pb.user_id} ${pb.amount} on {pb.selected_option!r} -> ${pb.potential_winnings}")
    for fb in engine.fire_backs_for_bet(bet_id):
        console.log(f"fire back {fb.id} by {fb.user_id}: ${fb.new_wager} ({fb.status})")


@app.command()
def create(
    creator: str,
    description: str,
    option: list[str] = typer.Option(..., "--option", "-o", help="Repeat for each outcome."),
    hours: float = typer.Option(24.0, help="Hours until the bet closes."),
    closes_at: str = typer.Option(None, help="ISO-8601 closing time; overrides --hours."),
    visibility: str = typer.Option("public"),
    challenge: list[str] = typer.Option([], "--challenge", help="Challenged user ids."),
    minimum_wager: str = typer.Option(None),
    stake_on: str = typer.Option(None, help="Option key for the creator's opening stake."),
    stake: str = typer.Option(None, help="Amount of the creator's opening stake."),
):
    """Create a bet, optionally with the creator's opening stake."""
    closing = parse_iso(closes_at) if closes_at else datetime.now(timezone.utc) + timedelta(hours=hours)
    creator_stake = (stake_on, stake) if stake_on and stake else None
    try:
        bet = _engine().create_bet(
            creator,
            description,
            option,
            closing,
            visibility=visibility,
            challenged_users=challenge,
            minimum_wager=minimum_wager,
            creator_stake=creator_stake,
        )
    except SideBetError as e:
        _fail(e)
    console.print(_bet_table(bet))


@app.command()
def place(bet_id: str, user: str, option: str, amount: str):
    """Stake money on an option."""
    try:
        placement = _engine().place_bet(bet_id, user, option, amount)
    except SideBetError as e:
        _fail(e)
    pb = placement.placed_bet
    console.log(f"PLACED {pb.user_id} ${pb.amount} on {pb.selected_option!r}, wins ${pb.potential_winnings}")
    console.print(_bet_table(placement.bet))


@app.command("fire-back")
def fire_back(bet_id: str, challenger: str, new_wager: str):
    """Dare the bet's creator to match a bigger stake."""
    try:
        fb = _engine().fire_back(bet_id, challenger, new_wager)
    except SideBetError as e:
        _fail(e)
    console.log(f"Fire back {fb.id} pending: ${fb.new_wager}")


@app.command()
def respond(
    fire_back_id: str,
    responder: str,
    accept: bool = typer.Option(..., "--accept/--decline"),
):
    """Match or back down from a fire back."""
    try:
        fb = _engine().respond_to_fire_back(fire_back_id, accept, responder_id=responder)
    except SideBetError as e:
        _fail(e)
    console.log(f"Fire back {fb.id}: {fb.status}")


@app.command()
def lock(bet_id: str, user: str):
    """Stop taking stakes before the closing time."""
    try:
        bet = _engine().lock_bet(bet_id, by_user=user)
    except SideBetError as e:
        _fail(e)
    console.print(_bet_table(bet))


@app.command()
def dispute(bet_id: str, user: str):
    """Flag a bet's outcome as contested."""
    try:
        bet = _engine().dispute_bet(bet_id, by_user=user)
    except SideBetError as e:
        _fail(e)
    console.print(_bet_table(bet))


@app.command()
def settle(bet_id: str, winning_option: str):
    """Resolve a locked or disputed bet and pay the winners."""
    try:
        result = _engine().settle(bet_id, winning_option)
    except SideBetError as e:
        _fail(e)
    if not result.payouts:
        console.log("No winners")
    for user_id, amount in result.payouts.items():
        console.log(f"PAID {user_id} ${amount}")


@app.command()
def demo():
    """Run the two-friend coin flip in memory and print every step."""
    engine = WagerEngine(clock=ManualClock())
    bet, result = run_scenario(engine)
    console.print(_bet_table(bet))
    for pb in engine.placed_bets(bet.id):
        console.log(f"{pb.user_id} ${pb.amount} on {pb.selected_option!r} locked in ${pb.potential_winnings}")
    for user_id, amount in result.payouts.items():
        console.log(f"PAID {user_id} ${amount}")
    for u in engine.list_users():
        console.log(f"{u.id} balance ${u.wallet_balance}")
