from __future__ import annotations


def fmt_kbps(v: int | None) -> str:
    if v is None:
        return "N/A"
    # decimal units, matching how the rate is derived
    x = int(v)
    if x < 1000:
        return f"{x} kbps"
    if x < 1000**2:
        return f"{x/1000:.1f} Mbps"
    return f"{x/(1000**2):.2f} Gbps"


def fmt_interfaces(names: list[str]) -> str:
    return ", ".join(names) if names else "none"
