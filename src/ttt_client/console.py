#!/usr/bin/env python3
"""
Console front end for the tic-tac-toe client.

Usage:
    ttt-client --server 127.0.0.1:7350 --mode timed

Commands once connected:
    <row> <col> or move <row> <col> - Place your symbol (rows and columns are 0-2)
    board - Show the board again
    new - Look for a new game after a match is over, or reconnect after a failure
    leaderboard - Show the latest leaderboard
    quit - Disconnect and exit
"""

import argparse
import sys
import uuid
from typing import Optional, Tuple

from .app import create_client
from .config import ClientConfig
from .errors import ConfigError
from .notifications import (
    Notification, StatusChanged, Announcement, ShowTimer, HideTimer,
    TimerChanged, SymbolAssigned, RosterChanged, MatchStarted, TurnChanged,
    BoardChanged, MatchOver, AllowNewGame, ShowMatchControls, ErrorNotification,
    Diagnostic, MoveRejected, MoveSent, LeaderboardUpdated, LeaderboardUnavailable,
)
from .session_state import BOARD_WIDTH, Outcome, GameMode

NO_SCORES = "No scores yet - play some games!"

_OUTCOME_BANNERS = {
    Outcome.WIN: "🏆 Game Over",
    Outcome.DRAW: "🤝 Game Draw",
    Outcome.TIMEOUT: "⏰ Timeout",
}


def format_board(board: Tuple[str, ...], selectable: Tuple[int, ...] = ()) -> str:
    """Renders the board as a 3x3 grid; free cells show their row and column."""
    rows = []
    for r in range(BOARD_WIDTH):
        cells = []
        for c in range(BOARD_WIDTH):
            index = r * BOARD_WIDTH + c
            if board[index]:
                cells.append(f" {board[index]} ")
            elif index in selectable:
                cells.append(f"{r},{c}")
            else:
                cells.append("   ")
        rows.append(" " + "|".join(cells))
    return ("\n " + "+".join(["---"] * BOARD_WIDTH) + "\n").join(rows)


class ConsoleSink(object):
    """Prints notifications to a text stream."""

    def __init__(self, out=None):
        self.out = out if out is not None else sys.stdout
        self.timer_visible = False
        self.board: Optional[BoardChanged] = None
        self.leaderboard: Optional[Notification] = None
        self._renderers = {
            StatusChanged: lambda n: self._print(f"[{n.status}] {n.text}"),
            Announcement: lambda n: self._print(f"💬 {n.text}"),
            ShowTimer: self._show_timer,
            HideTimer: self._hide_timer,
            TimerChanged: self._timer_changed,
            SymbolAssigned: lambda n: self._print(f"🎯 Your symbol is: {n.symbol}"),
            RosterChanged: lambda n: self._print(f"👥 Players in match: {n.player_count}"),
            MatchStarted: lambda n: self._print("🚀 Game started! Make your move!"),
            TurnChanged: self._turn_changed,
            BoardChanged: self._board_changed,
            MatchOver: self._match_over,
            AllowNewGame: lambda n: self._print("Type 'new' to look for another game."),
            ShowMatchControls: lambda n: self._print("Enter moves as '<row> <col>' (0-2)."),
            ErrorNotification: lambda n: self._print(f"❌ Error: {n.message}"),
            Diagnostic: lambda n: self._print(f"🔍 {n.text}"),
            MoveRejected: lambda n: self._print(f"✗ Move rejected: {n.reason}"),
            MoveSent: lambda n: self._print(f"📤 Move sent: {n.symbol or '?'} to ({n.row}, {n.col})"),
            LeaderboardUpdated: self._leaderboard_changed,
            LeaderboardUnavailable: self._leaderboard_changed,
        }

    def __call__(self, notification: Notification):
        renderer = self._renderers.get(type(notification))
        if renderer is not None:
            renderer(notification)

    def _print(self, text: str):
        print(text, file=self.out, flush=True)

    def _show_timer(self, n: ShowTimer):
        self.timer_visible = n.visible
        if n.visible:
            self._print("⏰ Timed mode: each turn has a time limit")

    def _hide_timer(self, n: HideTimer):
        self.timer_visible = False

    def _timer_changed(self, n: TimerChanged):
        if self.timer_visible:
            warning = " - hurry!" if n.low else ""
            self._print(f"⏰ {n.time_remaining}s left{warning}")

    def _turn_changed(self, n: TurnChanged):
        if n.is_local_turn:
            self._print("🎯 It's your turn!")
        else:
            self._print("⌛ Waiting for opponent...")

    def _board_changed(self, n: BoardChanged):
        self.board = n
        self.show_board()

    def _match_over(self, n: MatchOver):
        self._print(f"{_OUTCOME_BANNERS[n.outcome]} - {n.message}")
        if n.winner_id is not None:
            self._print("🎉 You won!" if n.local_won else "You lost this one.")

    def _leaderboard_changed(self, n: Notification):
        # The poller runs every few seconds; only print when something changed
        if n != self.leaderboard:
            self.leaderboard = n
            self.show_leaderboard()

    def show_board(self):
        if self.board is None:
            self._print("No board yet.")
            return
        self._print(format_board(self.board.board, self.board.selectable))

    def show_leaderboard(self):
        n = self.leaderboard
        if not isinstance(n, LeaderboardUpdated) or not n.entries:
            self._print(NO_SCORES)
            return
        self._print("=" * 40)
        self._print("LEADERBOARD")
        self._print("=" * 40)
        for entry in n.entries:
            self._print(f"{entry.rank:>3}  {entry.display_name:<25} {entry.score:>6}")
        self._print("=" * 40)


def parse_move(parts) -> Optional[Tuple[int, int]]:
    """Parses ['1', '2'] into (1, 2); returns None if that isn't a move."""
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def build_parser():
    parser = argparse.ArgumentParser(description="Tic-tac-toe match client", prog="ttt-client")
    parser.add_argument("--server", help="Server address as host[:port]")
    parser.add_argument("--username", help="Your display name")
    parser.add_argument("--device-id", help="Device identifier used to log in (random if omitted)")
    parser.add_argument("--mode", choices=[m.value for m in GameMode], help="Game mode to look for")
    parser.add_argument("--ssl", action="store_true", default=None, help="Connect with https/wss")
    parser.add_argument("--log-level", help="Log level, e.g. DEBUG or INFO")
    return parser


def main(argv=None):
    """Main function."""
    args = build_parser().parse_args(argv)

    try:
        config = ClientConfig.from_env().update(
            server_url=args.server,
            username=args.username,
            device_id=args.device_id,
            game_mode=args.mode,
            use_ssl=args.ssl,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except ConfigError as e:
        print(f"✗ {e}")
        return 1

    if not config.username:
        username = input("Enter your username: ").strip()
        if not username:
            print("Username cannot be empty")
            return 1
        config = config.update(username=username)
    if not config.device_id:
        config = config.update(device_id=str(uuid.uuid4()))

    sink = ConsoleSink()
    client = create_client(config, sink)

    print(f"Connecting to server at {config.server_url}")
    if not client.connect():
        return 1

    try:
        while True:
            command = input().strip()
            if not command:
                continue

            parts = command.split()
            cmd = parts[0].lower()

            if cmd in ("quit", "exit", "q"):
                print("Goodbye!")
                break
            elif cmd == "board":
                sink.show_board()
            elif cmd == "new":
                client.new_game()
            elif cmd == "leaderboard":
                sink.show_leaderboard()
            else:
                move = parse_move(parts[1:] if cmd == "move" else parts)
                if move is None:
                    print("Unknown command. Available: <row> <col>, move <row> <col>, board, new, leaderboard, quit")
                    continue
                client.submit_move(*move)

    except (KeyboardInterrupt, EOFError):
        print("\n👋 Exiting...")
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
