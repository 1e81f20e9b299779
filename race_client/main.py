from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, Sequence

from race_client.config import ConfigError, RaceConfig, load_config, load_cvars
from race_client.core import ConnectionSession, ReconciliationEngine
from race_client.ui import RaceCLI
from race_shared.protocol.constants import CLIENT_VERSION
from race_shared.protocol.errors import TransportError
from race_shared.protocol.packets import UpdateClientDataPacket

logger = logging.getLogger(__name__)


def host_announcement(config: RaceConfig, cvars: dict) -> UpdateClientDataPacket:
    """First packet of a session: the host's own data with the race seed and game config."""
    return UpdateClientDataPacket(
        room_id=config.room,
        data={
            "name": "HOST",
            "clientVersion": CLIENT_VERSION,
            "seed": config.seed,
            "config": cvars,
        },
    )


async def run_client(config: RaceConfig) -> None:
    cvars = load_cvars(config.cvars_path)
    network = ConnectionSession(config)
    ReconciliationEngine(network, config)
    cli = RaceCLI(network, config)

    await network.connect()
    try:
        await network.send(host_announcement(config, cvars))
        await cli.run()
    finally:
        await network.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    try:
        config = load_config(args)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 2
    logging.basicConfig(level=config.log_level)
    logger.info("Config: %s", config.model_dump(mode="json"))

    try:
        asyncio.run(run_client(config))
    except (ConfigError, TransportError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
