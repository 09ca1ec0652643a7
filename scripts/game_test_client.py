#!/usr/bin/env python3
"""
Send game requests to the TursoConnector over NATS and print the replies.

Useful for smoke-testing a running connector from a developer workstation:

    python scripts/game_test_client.py health
    python scripts/game_test_client.py create --opener alice --follower bob
    python scripts/game_test_client.py query --exchange-id 42
"""

import argparse
import asyncio
import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

import nats

SUBJECTS = {
    "health": ("game.health.check", "health.check"),
    "create": ("game.exchange.create", "exchange.create"),
    "query": ("game.exchange.query", "exchange.query"),
}


def build_message(command: str, args: argparse.Namespace) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if command == "create":
        data = {
            "opener": args.opener,
            "follower": args.follower,
            "openerCard": args.opener_card,
            "followerCard": args.follower_card,
        }
    elif command == "query" and args.exchange_id is not None:
        data = {"exchangeId": args.exchange_id}

    return {
        "messageId": str(uuid.uuid4()),
        "messageType": SUBJECTS[command][1],
        "playerId": args.player_id,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def send(args: argparse.Namespace) -> int:
    subject = SUBJECTS[args.command][0]
    message = build_message(args.command, args)

    client = await nats.connect(servers=args.nats_url)
    try:
        reply = await client.request(subject, json.dumps(message).encode("utf-8"), timeout=args.timeout)
    except nats.errors.TimeoutError:
        print(f"No reply on {subject} within {args.timeout}s", file=sys.stderr)
        return 1
    finally:
        await client.close()

    print(json.dumps(json.loads(reply.data.decode("utf-8")), indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Publish test requests to the TursoConnector")
    parser.add_argument("--nats-url", default="nats://localhost:4222")
    parser.add_argument("--player-id", default="test-player")
    parser.add_argument("--timeout", type=float, default=5.0)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Publish a health check")

    create = subparsers.add_parser("create", help="Create an exchange")
    create.add_argument("--opener", required=True)
    create.add_argument("--follower", required=True)
    create.add_argument("--opener-card", default="")
    create.add_argument("--follower-card", default="")

    query = subparsers.add_parser("query", help="Query one or all exchanges")
    query.add_argument("--exchange-id", type=int)

    return asyncio.run(send(parser.parse_args()))


if __name__ == "__main__":
    sys.exit(main())
