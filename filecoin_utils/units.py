from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, getcontext
from fractions import Fraction

getcontext().prec = 80

_BYTE_SIZE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB")
_FIL_UNIT_PREFIXES = ("a", "f", "p", "n", "μ", "m")


def size_str(n_bytes: int) -> str:
    """Human readable binary size, e.g. `32 GiB` (Lotus `types.SizeStr`)."""
    if not n_bytes:
        return "0 B"
    r = Fraction(n_bytes)
    i = 0
    while float(r) >= 1024 and i + 1 < len(_BYTE_SIZE_UNITS):
        i += 1
        r /= 1024
    return f"{float(r):.4g} {_BYTE_SIZE_UNITS[i]}"


def fil_short(atto: int) -> str:
    """Shortest readable FIL amount, e.g. `1.5 mFIL` (Lotus `types.FIL.Short`)."""
    n = abs(int(atto))
    dn = 1
    prefix = ""
    for p in _FIL_UNIT_PREFIXES:
        if n < dn * 1000:
            prefix = p
            break
        dn *= 1000

    if atto == 0:
        return "0"
    r = (Decimal(int(atto)) / Decimal(dn)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    return f"{r:f}".rstrip("0").rstrip(".") + " " + prefix + "FIL"
