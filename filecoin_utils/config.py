from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

FILECOIN_RPC_DEFAULT = "https://api.node.glif.io/rpc/v1"
DEFAULT_WORKERS = 8


def get_url_and_token(api_info: str) -> Tuple[str, str]:
    """Split a Lotus `FULLNODE_API_INFO` string (`token:/ip4/<host>/tcp/<port>/http`)."""
    try:
        token, api = api_info.split(":", 1)
        _, _, addr, _, port, proto = api.split("/", 5)
    except ValueError as e:
        raise ValueError(f"malformed API string: {api_info}") from e
    return f"{proto}://{addr}:{port}/rpc/v1", token


@dataclass(frozen=True)
class Settings:
    rpc_url: str = FILECOIN_RPC_DEFAULT
    token: Optional[str] = None
    workers: int = DEFAULT_WORKERS
    log_level: str = "INFO"
    timeout_s: int = 60
    max_tries: int = 8

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        rpc_url = env.get("FILECOIN_RPC_URL") or FILECOIN_RPC_DEFAULT
        token = env.get("FILECOIN_RPC_TOKEN") or None
        api_info = env.get("FULLNODE_API_INFO")
        if api_info:
            rpc_url, token = get_url_and_token(api_info)

        workers = int(env.get("FILECOIN_UTILS_WORKERS") or DEFAULT_WORKERS)
        if workers < 1:
            raise ValueError(f"FILECOIN_UTILS_WORKERS must be >= 1, got {workers}")

        return cls(
            rpc_url=rpc_url,
            token=token,
            workers=workers,
            log_level=env.get("FILECOIN_UTILS_LOG_LEVEL") or "INFO",
        )
