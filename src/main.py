"""
Main entry point for the prediction dice client

Commands:
    play NUMBER [AMOUNT]   place a bet and wait for the result
    history                show reconciled history with filters and sorting
    stats                  show aggregate statistics
"""

__version__ = "1.0.0"

import argparse
import asyncio
import logging
import random
import sys
import time
from datetime import date
from decimal import Decimal

from config import ConfigError, config
from core import BetRoundController, PlayerDashboard
from core.formatting import (
    explorer_url,
    format_amount,
    format_percent,
    format_signed,
    relative_time,
    short_hash,
)
from ledger import LedgerGateway, SimulatedLedgerGateway
from models import OutcomeFilter, PlayerStats, RoundStatus, SortKey, SortOrder
from services import event_bus
from services.logger import set_level, setup_logging
from services.session import SessionContext, WalletSession

SIMULATED_ACCOUNT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class Application:
    """
    Wires session, ledger gateway, bet controller and dashboard together
    """

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.logger = setup_logging({"json_logs": True} if args.json_logs else None)
        if args.verbose:
            set_level("DEBUG")
        config.set_logger(self.logger)
        if args.config:
            config.load_from_file(args.config)
        config.ensure_directories()

        try:
            config.validate()
        except ConfigError as e:
            self.logger.critical(f"Configuration validation failed: {e}")
            raise

        self.session = WalletSession(bus=event_bus)
        self.gateway = self._create_gateway()
        self.session.set_balance_source(self.gateway.get_balance)

        self.controller: BetRoundController | None = None
        self.dashboard: PlayerDashboard | None = None

    def _create_gateway(self) -> LedgerGateway:
        ledger = config.LEDGER

        if self.args.simulated:
            gateway = SimulatedLedgerGateway(
                self.session,
                chain_id=ledger["chain_id"],
                rng=random.Random(self.args.seed),
            )
            gateway.fund(SIMULATED_ACCOUNT, Decimal(self.args.balance))
            self._seed_demo_history(gateway, self.args.demo_games)
            self.session.connect(SessionContext(SIMULATED_ACCOUNT, ledger["chain_id"]))
            self.logger.info(f"Using simulated ledger for {SIMULATED_ACCOUNT}")
            return gateway

        from ledger import Web3LedgerGateway

        account = self.args.account or ledger["account"]
        if not account:
            raise ConfigError("No account configured (use --account or LEDGER_ACCOUNT)")

        gateway = Web3LedgerGateway(
            self.session,
            rpc_url=ledger["rpc_url"],
            contract_address=ledger["contract_address"],
            expected_chain_id=ledger["chain_id"],
            from_block=ledger["from_block"],
            receipt_timeout=ledger["receipt_timeout"],
        )
        self.session.connect(SessionContext(account, ledger["chain_id"], ledger["private_key"]))
        self.logger.info(f"Using JSON-RPC ledger at {ledger['rpc_url']} for {account}")
        return gateway

    def _seed_demo_history(self, gateway: SimulatedLedgerGateway, count: int):
        rng = random.Random(self.args.seed)
        quick_bets = [Decimal(b) for b in config.get("financial", "quick_bets")]
        low, high = config.get("game_rules", "min_number"), config.get("game_rules", "max_number")
        now = int(time.time())
        for i in range(count):
            gateway.add_history(
                SIMULATED_ACCOUNT,
                bet_number=rng.randint(low, high),
                result_number=rng.randint(low, high),
                bet_amount=rng.choice(quick_bets),
                timestamp=now - (count - i) * rng.randint(600, 7200),
            )

    async def run(self) -> int:
        self.controller = BetRoundController(self.gateway, self.session, bus=event_bus)
        self.dashboard = PlayerDashboard(
            self.gateway, self.session, controller=self.controller, bus=event_bus, refresh_delay=0
        )
        try:
            if self.args.command == "play":
                return await self.play()
            if self.args.command == "history":
                return await self.history()
            return await self.stats()
        finally:
            await self.controller.close()
            await self.dashboard.close()

    async def play(self) -> int:
        amount = self.args.amount or config.get("financial", "default_bet")
        exit_code = 0

        for _ in range(self.args.rounds):
            final = await self.controller.place_bet(self.args.number, amount)
            if final is None:
                continue

            if final.status == RoundStatus.FAILED:
                print(f"Bet failed: {final.error_message}")
                exit_code = 1
                break

            outcome = final.outcome
            if outcome.won:
                print(f"Rolled {outcome.rolled}: you won {format_amount(outcome.payout)} ETH")
            else:
                print(f"Rolled {outcome.rolled}: you lost {format_amount(outcome.bet_amount)} ETH")
            print(f"  tx {short_hash(outcome.tx_hash)} (game #{outcome.game_id})")
            print(f"  {explorer_url(outcome.tx_hash)}")

        await self.dashboard.wait_idle()
        recent = " ".join(
            f"{r.rolled}{'W' if r.won else 'L'}" for r in self.controller.recent_results
        )
        print(f"Recent: {recent or '-'}")
        print(f"Balance: {format_amount(await self.session.get_balance())} ETH")
        return exit_code

    async def history(self) -> int:
        await self.dashboard.refresh()
        dashboard = self.dashboard

        dashboard.set_outcome_filter(self.args.filter)
        dashboard.set_search(self.args.search or "")
        dashboard.set_date_range(self.args.date_from, self.args.date_to)
        dashboard.set_sort(self.args.sort, self.args.order)
        for _ in range(self.args.pages - 1):
            dashboard.load_more()

        page = dashboard.page()
        if page.is_empty:
            print("No games found" + (" for the active filters" if dashboard.has_active_filters else ""))
            return 0

        for record in page.records:
            result = f"+{format_amount(record.payout)}" if record.won else f"-{format_amount(record.bet_amount)}"
            print(
                f"#{record.game_id:<6} bet {record.bet_number} rolled {record.result_number} "
                f"{'WIN ' if record.won else 'LOSS'} {format_amount(record.bet_amount)} ETH "
                f"{result:>10}  {relative_time(record.timestamp):>9}  {short_hash(record.tx_hash)}"
            )
        if page.has_more:
            print(f"... {page.filtered_count - len(page.records)} more (use --pages)")
        self._print_stats(page.stats, "Filtered" if dashboard.has_active_filters else "Total")
        return 0

    async def stats(self) -> int:
        await self.dashboard.refresh()
        self._print_stats(self.dashboard.stats, "Total")
        for error in self.dashboard.last_errors:
            print(f"warning: {error}")
        return 0

    def _print_stats(self, stats: PlayerStats, label: str):
        print(f"{label}: {stats.total_games} games, {stats.wins} wins, {stats.losses} losses")
        print(f"  Win rate:  {format_percent(stats.win_rate_percent)}")
        print(f"  Wagered:   {format_amount(stats.total_wagered)} ETH")
        print(f"  Won:       {format_amount(stats.total_won)} ETH")
        print(f"  Lost:      {format_amount(stats.total_lost)} ETH")
        print(f"  Net:       {format_signed(stats.net_profit)} ETH")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prediction dice client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --simulated play 3 0.01          # One bet against the in-process ledger
  %(prog)s --simulated --demo-games 30 history --filter wins --sort outcome
  %(prog)s --account 0xabc... stats         # Stats from the configured JSON-RPC node
        """,
    )
    parser.add_argument("--simulated", action="store_true", help="Use the in-process ledger")
    parser.add_argument("--account", help="Player address (default: LEDGER_ACCOUNT)")
    parser.add_argument("--balance", default="1", help="Simulated starting balance in ETH")
    parser.add_argument("--demo-games", type=int, default=0, help="Simulated games to pre-seed")
    parser.add_argument("--seed", type=int, default=None, help="Simulated RNG seed")
    parser.add_argument("--config", metavar="FILE", help="JSON settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Write log files as JSON lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", required=True)

    play = commands.add_parser("play", help="Place a bet")
    play.add_argument("number", type=int, help="Predicted number")
    play.add_argument("amount", nargs="?", help="Bet amount in ETH")
    play.add_argument("--rounds", type=int, default=1, help="Number of consecutive bets")

    history = commands.add_parser("history", help="Show game history")
    history.add_argument("--filter", choices=[f.value for f in OutcomeFilter], default="all")
    history.add_argument("--search", help="Transaction hash substring")
    history.add_argument("--from", dest="date_from", type=date.fromisoformat, help="Start day (YYYY-MM-DD)")
    history.add_argument("--to", dest="date_to", type=date.fromisoformat, help="End day, inclusive")
    history.add_argument("--sort", choices=[k.value for k in SortKey], default="date")
    history.add_argument("--order", choices=[o.value for o in SortOrder], default="desc")
    history.add_argument("--pages", type=int, default=1, help="Pages to show")

    commands.add_parser("stats", help="Show aggregate statistics")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        app = Application(args)
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except (ConfigError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        logging.critical(f"Unhandled exception: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
