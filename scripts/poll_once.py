"""Bootstrap the notification pipelines and run a few poll cycles.

Useful for checking what a picker or orderer would be shown against a live
backend without starting the HTTP service.
"""

import argparse
import asyncio
import json

from pickersync.services.notification_sync.service import NotificationSyncService
from pickersync.services.notification_sync.session import IntentRouter, SessionState


async def run(token: str, role: str, cycles: int, interval: float) -> dict:
    """Start, poll `cycles` times and return every category snapshot."""

    service = NotificationSyncService.from_settings(SessionState(token, role), IntentRouter())
    try:
        if not await service.start():
            raise SystemExit("Polling did not start (missing token?)")
        for _ in range(cycles):
            await asyncio.sleep(interval)
            await service.poll_once()
        return {name: pipeline.snapshot().model_dump(mode="json") for name, pipeline in service.pipelines.items()}
    finally:
        await service.aclose()


def main() -> None:
    """Parse CLI args and print category snapshots as JSON."""

    parser = argparse.ArgumentParser(description="Run notification poll cycles against the backend.")
    parser.add_argument("--token", required=True, help="Bearer token of the signed-in user")
    parser.add_argument("--role", choices=["PICKER", "ORDERER"], default="PICKER")
    parser.add_argument("--cycles", type=int, default=1)
    parser.add_argument("--interval", type=float, default=3.0)
    args = parser.parse_args()

    snapshots = asyncio.run(run(args.token, args.role, args.cycles, args.interval))
    print(json.dumps(snapshots, indent=2))


if __name__ == "__main__":
    main()
