"""Filecoin storage provider economics: termination fees, QA power, expirations."""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import ActorNotFound, ActorStateDecodeError, DivisionByZero, FilecoinUtilsError, InvalidAddress, QueryFailure
from .params import BUILTIN_ACTORS_PARAMS, DEFAULT_PARAMS, ProtocolParams
from .smoothing import FilterEstimate
from .types import SectorRecord, TipSetRef

__all__ = [
    "ActorNotFound",
    "ActorStateDecodeError",
    "BUILTIN_ACTORS_PARAMS",
    "DEFAULT_PARAMS",
    "DivisionByZero",
    "FilecoinUtilsError",
    "FilterEstimate",
    "InvalidAddress",
    "ProtocolParams",
    "QueryFailure",
    "SectorRecord",
    "TipSetRef",
    "__version__",
]
