import argparse
import asyncio
import logging

from holdem.models import GameSettings

from .server import RoomServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Texas Hold'em room host")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--room-id", default="R-1")
    parser.add_argument("--max-players", type=int, default=9)
    parser.add_argument("--small-blind", type=int, default=10)
    parser.add_argument("--big-blind", type=int, default=20)
    parser.add_argument("--starting-chips", type=int, default=1000)
    parser.add_argument(
        "--turn-time",
        type=int,
        default=30,
        help="Seconds per turn before an automatic fold (0 disables the clock)",
    )
    parser.add_argument("--extension-time", type=int, default=30, help="Seconds added by one extension")
    args = parser.parse_args()

    settings = GameSettings(
        max_players=args.max_players,
        small_blind=args.small_blind,
        big_blind=args.big_blind,
        starting_chips=args.starting_chips,
        turn_time_limit=args.turn_time,
        extension_time=args.extension_time,
    )

    server = RoomServer(settings, room_id=args.room_id)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
