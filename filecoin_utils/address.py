"""
Filecoin and Ethereum address parsing / conversion.

Filecoin string form: `<network><protocol><payload>`, network `f` (mainnet) or
`t` (testnets). Protocols:

- 0 ID:         decimal actor id
- 1 secp256k1:  base32(20-byte hash + checksum)
- 2 actor:      base32(20-byte hash + checksum)
- 3 BLS:        base32(48-byte pubkey + checksum)
- 4 delegated:  `<namespace>f` + base32(subaddress + checksum)

checksum = blake2b-32 over (protocol byte || payload).
"""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass
from typing import Tuple

from Crypto.Hash import keccak

from .errors import InvalidAddress

ID, SECP256K1, ACTOR, BLS, DELEGATED = 0, 1, 2, 3, 4

EAM_NAMESPACE = 10
CHECKSUM_LEN = 4
MAX_SUBADDRESS_LEN = 54
_PAYLOAD_LEN = {SECP256K1: 20, ACTOR: 20, BLS: 48}
_MAX_U64 = (1 << 64) - 1

# 0xff followed by 11 zero bytes, then the big-endian actor id.
_MASKED_ID_PREFIX = b"\xff" + b"\x00" * 11
_ETH_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _uvarint(n: int) -> bytes:
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def _checksum(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=CHECKSUM_LEN).digest()


def _b32encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


def _b32decode(s: str) -> bytes:
    if not s or not re.fullmatch(r"[a-z2-7]+", s):
        raise InvalidAddress(f"invalid base32 payload: {s!r}")
    padded = s.upper() + "=" * (-len(s) % 8)
    try:
        return base64.b32decode(padded)
    except ValueError as e:
        raise InvalidAddress(f"invalid base32 payload: {s!r}") from e


@dataclass(frozen=True)
class Address:
    protocol: int
    payload: bytes = b""
    actor_id: int = 0
    namespace: int = 0
    network: str = "f"

    def __str__(self) -> str:
        prefix = f"{self.network}{self.protocol}"
        if self.protocol == ID:
            return f"{prefix}{self.actor_id}"
        if self.protocol == DELEGATED:
            cksm = _checksum(bytes([DELEGATED]) + _uvarint(self.namespace) + self.payload)
            return f"{prefix}{self.namespace}f{_b32encode(self.payload + cksm)}"
        cksm = _checksum(bytes([self.protocol]) + self.payload)
        return f"{prefix}{_b32encode(self.payload + cksm)}"


def parse_address(s: str) -> Address:
    if not isinstance(s, str) or len(s) < 3:
        raise InvalidAddress(f"invalid address: {s!r}")
    network, proto_ch, rest = s[0], s[1], s[2:]
    if network not in ("f", "t"):
        raise InvalidAddress(f"unknown network in address {s!r}")
    if proto_ch not in "01234":
        raise InvalidAddress(f"unknown protocol in address {s!r}")
    protocol = int(proto_ch)

    if protocol == ID:
        if not rest.isdigit() or len(rest) > 20 or (len(rest) > 1 and rest[0] == "0"):
            raise InvalidAddress(f"invalid ID address: {s!r}")
        actor_id = int(rest)
        if actor_id > _MAX_U64:
            raise InvalidAddress(f"ID address out of range: {s!r}")
        return Address(ID, actor_id=actor_id, network=network)

    if protocol == DELEGATED:
        ns_str, sep, encoded = rest.partition("f")
        if not sep or not ns_str.isdigit():
            raise InvalidAddress(f"invalid delegated address: {s!r}")
        namespace = int(ns_str)
        raw = _b32decode(encoded)
        if len(raw) <= CHECKSUM_LEN or len(raw) - CHECKSUM_LEN > MAX_SUBADDRESS_LEN:
            raise InvalidAddress(f"invalid delegated address length: {s!r}")
        payload, cksm = raw[:-CHECKSUM_LEN], raw[-CHECKSUM_LEN:]
        if _checksum(bytes([DELEGATED]) + _uvarint(namespace) + payload) != cksm:
            raise InvalidAddress(f"checksum mismatch: {s!r}")
        return Address(DELEGATED, payload=payload, namespace=namespace, network=network)

    raw = _b32decode(rest)
    payload, cksm = raw[:-CHECKSUM_LEN], raw[-CHECKSUM_LEN:]
    if len(payload) != _PAYLOAD_LEN[protocol]:
        raise InvalidAddress(f"invalid payload length for protocol {protocol}: {s!r}")
    if _checksum(bytes([protocol]) + payload) != cksm:
        raise InvalidAddress(f"checksum mismatch: {s!r}")
    return Address(protocol, payload=payload, network=network)


def parse_eth_address(s: str) -> bytes:
    if not isinstance(s, str) or not _ETH_RE.match(s):
        raise InvalidAddress(f"invalid eth address: {s!r}")
    return bytes.fromhex(s[2:])


def to_checksum_eth(raw: bytes) -> str:
    """EIP-55 mixed-case hex."""
    hex_addr = raw.hex()
    h = keccak.new(digest_bits=256)
    h.update(hex_addr.encode("ascii"))
    digest = h.hexdigest()
    return "0x" + "".join(c.upper() if int(digest[i], 16) >= 8 else c for i, c in enumerate(hex_addr))


def eth_to_filecoin(raw: bytes, network: str = "f") -> Address:
    if len(raw) != 20:
        raise InvalidAddress(f"eth address must be 20 bytes, got {len(raw)}")
    if raw.startswith(_MASKED_ID_PREFIX):
        return Address(ID, actor_id=int.from_bytes(raw[len(_MASKED_ID_PREFIX):], "big"), network=network)
    return Address(DELEGATED, payload=raw, namespace=EAM_NAMESPACE, network=network)


def eth_from_filecoin(addr: Address) -> bytes:
    if addr.protocol == ID:
        return _MASKED_ID_PREFIX + addr.actor_id.to_bytes(8, "big")
    if addr.protocol == DELEGATED and addr.namespace == EAM_NAMESPACE and len(addr.payload) == 20:
        return addr.payload
    raise InvalidAddress(f"no eth equivalent for {addr}")


def parse_any(s: str) -> Tuple[Address, bytes | None]:
    """Accept a Filecoin or an Ethereum address; returns (filecoin, eth or None)."""
    s = s.strip()
    if s.startswith("0x"):
        raw = parse_eth_address(s)
        return eth_to_filecoin(raw), raw
    return parse_address(s), None
