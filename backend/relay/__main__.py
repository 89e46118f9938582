"""Run the relay server: ``python -m relay``."""

import uvicorn

from relay.server.settings import RelayServerSettings


def main() -> None:  # pragma: no cover
    settings = RelayServerSettings()
    # WebSocket ping frames; a peer that misses a pong within the interval is closed.
    ws_ping = settings.heartbeat_interval or None
    uvicorn.run(
        "relay.server.app:get_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        ws_ping_interval=ws_ping,
        ws_ping_timeout=ws_ping,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
