"""Attribute extractors: pure normalizers over spec fields.

None of these raise on missing data. Unknown input yields ``None`` (or 0
for memory generation) so callers branch on "unspecified" explicitly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

# ──────────────────────────────────────────────
# Memory
# ──────────────────────────────────────────────


def normalize_memory_type(memory_type: Optional[str]) -> Optional[str]:
    """"DDR5-4800" -> "DDR5", "ddr4" -> "DDR4"."""
    if not memory_type or not str(memory_type).strip():
        return None
    return re.sub(r"-\d+$", "", str(memory_type).strip()).upper()


def memory_generation(memory_type: Optional[str]) -> int:
    """DDR generation number, 0 when not detected."""
    normalized = normalize_memory_type(memory_type)
    if not normalized:
        return 0
    m = re.search(r"DDR(\d+)", normalized)
    return int(m.group(1)) if m else 0


def split_memory_type(memory_type: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
    """"DDR5-4800" -> ("DDR5", 4800); speed is None without a suffix."""
    base = normalize_memory_type(memory_type)
    if base is None:
        return None, None
    m = re.search(r"-(\d+)$", str(memory_type).strip())
    return base, int(m.group(1)) if m else None


def memory_types_speed_ceiling(memory_types: Optional[Iterable[str]]) -> Optional[int]:
    """Lowest speed suffix across e.g. ["DDR5-4800", "DDR5-5600"]."""
    speeds = [s for _, s in (split_memory_type(t) for t in memory_types or []) if s]
    return min(speeds) if speeds else None


def memory_generation_compatibility(
    cpu_types: Optional[Iterable[str]], ram_type: Optional[str]
) -> Tuple[bool, Optional[str]]:
    """Directional DDR compatibility between a CPU and installed RAM.

    Returns (compatible, message). Newer CPU with older RAM works at the
    RAM's speed and the message is a warning. Older CPU with newer RAM does
    not work and the message is the reason. Unknown data is compatible.
    """
    ram_base = normalize_memory_type(ram_type)
    cpu_bases = [b for b in (normalize_memory_type(t) for t in cpu_types or []) if b]
    if not ram_base or not cpu_bases:
        return True, None
    if ram_base in cpu_bases:
        return True, None

    ram_gen = memory_generation(ram_base)
    cpu_gen = max(memory_generation(b) for b in cpu_bases)
    if ram_gen == 0 or cpu_gen == 0:
        return True, None
    cpu_label = "DDR%d" % cpu_gen
    if cpu_gen > ram_gen:
        return True, (
            f"CPU supports {cpu_label} but {ram_base} RAM installed - "
            f"RAM will run at {ram_base} speeds"
        )
    return False, (
        f"CPU only supports {cpu_label} but {ram_base} RAM is installed - incompatible"
    )


def normalize_memory_form_factor(form_factor: Optional[str]) -> Optional[str]:
    """"DIMM (288-pin)" -> "DIMM", "sodimm" -> "SO-DIMM"."""
    if not form_factor or not str(form_factor).strip():
        return None
    upper = str(form_factor).strip().upper()
    if "SO-DIMM" in upper or "SODIMM" in upper:
        return "SO-DIMM"
    if "DIMM" in upper:
        return "DIMM"
    return upper


_MODULE_TYPES = ("LRDIMM", "RDIMM", "UDIMM")


def normalize_module_type(module_type: Optional[str]) -> Optional[str]:
    """RDIMM / LRDIMM / UDIMM, or None when unrecognized."""
    if not module_type:
        return None
    upper = str(module_type).strip().upper().replace("-", "")
    # LRDIMM before RDIMM: "RDIMM" is a substring of "LRDIMM"
    for kind in _MODULE_TYPES:
        if kind in upper:
            return kind
    if "REGISTERED" in upper:
        return "RDIMM"
    if "LOAD" in upper and "REDUCED" in upper:
        return "LRDIMM"
    if "UNBUFFERED" in upper:
        return "UDIMM"
    return None


@dataclass(frozen=True)
class FrequencyAnalysis:
    status: str
    ram_frequency: int
    system_max_frequency: int
    effective_frequency: int
    message: str


def analyze_memory_frequency(
    ram_speed: Optional[int], system_max: Optional[int]
) -> Optional[FrequencyAnalysis]:
    """Classify RAM speed against the system ceiling.

    ``limited``: faster than the system, runs at the ceiling.
    ``suboptimal``: below 80% of the ceiling.
    """
    if not ram_speed:
        return None
    if not system_max:
        return FrequencyAnalysis(
            "optimal", ram_speed, ram_speed, ram_speed,
            f"RAM frequency {ram_speed}MHz accepted (no constraints)",
        )
    if ram_speed <= system_max:
        status, effective = "optimal", ram_speed
        message = f"RAM will operate at full rated speed of {ram_speed}MHz"
    else:
        status, effective = "limited", system_max
        message = (
            f"RAM will operate at {system_max}MHz instead of rated {ram_speed}MHz"
        )
    if ram_speed < system_max * 0.8:
        status = "suboptimal"
        message = "RAM frequency may impact performance - consider higher frequency memory"
    return FrequencyAnalysis(status, ram_speed, system_max, effective, message)


# ──────────────────────────────────────────────
# Socket
# ──────────────────────────────────────────────


def normalize_socket(socket: Optional[str]) -> Optional[str]:
    if socket is None:
        return None
    normalized = re.sub(r"\s+", " ", str(socket).strip()).lower()
    return normalized or None


def sockets_match(a: Optional[str], b: Optional[str]) -> Optional[bool]:
    """Case/space-insensitive socket equality; None if either is unknown."""
    na, nb = normalize_socket(a), normalize_socket(b)
    if na is None or nb is None:
        return None
    return na == nb


# ──────────────────────────────────────────────
# Storage
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class StorageInterface:
    protocol: Optional[str]
    generation: Optional[float]
    original: str = ""


def parse_storage_interface(interface: Optional[str]) -> StorageInterface:
    """Protocol + generation, independent of token order.

    "NVMe PCIe 4.0" and "PCIe NVMe 4.0" both give (nvme, 4.0);
    "SATA III" gives (sata, 3); "SAS3" gives (sas, 3).
    """
    text = str(interface or "").strip().lower()
    protocol: Optional[str] = None
    if "nvme" in text:
        protocol = "nvme"
    elif "sata" in text:
        protocol = "sata"
    elif "sas" in text:
        protocol = "sas"
    elif "u.2" in text or "u.3" in text:
        protocol = "nvme"

    generation: Optional[float] = None
    m = re.search(r"(\d+)\.(\d+)", text)
    if m:
        generation = float(f"{m.group(1)}.{m.group(2)}")
    else:
        m = re.search(r"(\d+)", text)
        if m:
            generation = float(m.group(1))
        elif "iii" in text:
            generation = 3.0
        elif "ii" in text:
            generation = 2.0
    return StorageInterface(protocol=protocol, generation=generation, original=text)


def extract_protocol(interface: Optional[str]) -> str:
    """Connection-path protocol: sas > sata > nvme > unknown."""
    text = str(interface or "").lower()
    if "sas" in text:
        return "sas"
    if "sata" in text:
        return "sata"
    if "nvme" in text or "pcie" in text:
        return "nvme"
    return "unknown"


def normalize_form_factor(form_factor: Optional[str]) -> Optional[str]:
    """Canonical form factor: "2.5-inch", "3.5-inch", "m.2", "u.2", "u.3".

    Accepts '2.5"', "2.5 inch", "2.5_inch", "3.5-inch", "M.2 2280" and so on.
    Anything else comes back lowercased and dash-joined.
    """
    if not form_factor or not str(form_factor).strip():
        return None
    text = str(form_factor).strip().lower()
    if "m.2" in text or re.search(r"\bm2\b", text):
        return "m.2"
    if "u.3" in text:
        return "u.3"
    if "u.2" in text:
        return "u.2"
    if "2.5" in text:
        return "2.5-inch"
    if "3.5" in text:
        return "3.5-inch"
    text = text.replace('"', "").replace("_", "-")
    return re.sub(r"\s+", "-", text)


def normalize_bay_type(bay_type: Optional[str]) -> str:
    """Bay labels compare lowercase with '_' and ' ' folded to '-'."""
    return str(bay_type or "").strip().lower().replace("_", "-").replace(" ", "-")


def is_m2(form_factor: Optional[str]) -> bool:
    return normalize_form_factor(form_factor) == "m.2"


def is_u2(form_factor: Optional[str]) -> bool:
    return normalize_form_factor(form_factor) in ("u.2", "u.3")


def form_factor_size(form_factor: Optional[str]) -> Optional[str]:
    """"2.5-inch" / "3.5-inch" for drive-bay sizes, else None."""
    normalized = normalize_form_factor(form_factor)
    if normalized in ("2.5-inch", "3.5-inch"):
        return normalized
    return None


def storage_pcie_generation(interface: Optional[str], default: float = 3.0) -> float:
    """"NVMe PCIe 4.0" -> 4.0; defaults to 3.0 when unstated."""
    m = re.search(r"pcie\s*(\d+(?:\.\d+)?)", str(interface or ""), re.IGNORECASE)
    return float(m.group(1)) if m else default


# ──────────────────────────────────────────────
# PCIe
# ──────────────────────────────────────────────

SLOT_SIZES: List[str] = ["x1", "x4", "x8", "x16"]


def slot_size(text: Optional[str]) -> Optional[str]:
    """"PCIe 4.0 x8" -> "x8", "x16" -> "x16"; None when no lane width."""
    if not text:
        return None
    m = re.search(r"x\s*(16|8|4|1)\b", str(text), re.IGNORECASE)
    return f"x{m.group(1)}" if m else None


def size_lanes(size: Optional[str]) -> int:
    if not size:
        return 0
    m = re.search(r"(\d+)", size)
    return int(m.group(1)) if m else 0


def compatible_slot_sizes(required: str) -> List[str]:
    """Backward fit: an xN card fits any slot of size >= N."""
    if required not in SLOT_SIZES:
        return []
    return SLOT_SIZES[SLOT_SIZES.index(required):]


def pcie_generation(text: Optional[str], explicit: Optional[float] = None) -> Optional[float]:
    """Explicit field wins; else parse "PCIe 4.0 x8" / "Gen4"."""
    if explicit is not None:
        return float(explicit)
    if not text:
        return None
    m = re.search(r"pcie\s*(\d+(?:\.\d+)?)", str(text), re.IGNORECASE)
    if not m:
        m = re.search(r"gen\s*(\d+)", str(text), re.IGNORECASE)
    return float(m.group(1)) if m else None


def lanes_from_interface(interface: Optional[str], default: int = 4) -> int:
    m = re.search(r"x(\d+)", str(interface or ""), re.IGNORECASE)
    return int(m.group(1)) if m else default


# ──────────────────────────────────────────────
# Networking
# ──────────────────────────────────────────────


def speed_gbps(speed: Optional[str]) -> Optional[float]:
    """"25GbE" -> 25.0, "1000Mbps" -> 1.0, "10G" -> 10.0."""
    if speed is None:
        return None
    text = str(speed).strip()
    m = re.search(r"(\d+(?:\.\d+)?)", text)
    if not m:
        return None
    value = float(m.group(1))
    if "M" in text.upper() and "G" not in text.upper():
        value = value / 1000.0
    return value


def max_speed_gbps(speeds: Optional[Iterable[str]]) -> Optional[float]:
    values = [v for v in (speed_gbps(s) for s in speeds or []) if v is not None]
    return max(values) if values else None


def normalize_port_type(port_type: Optional[str]) -> Optional[str]:
    """"sfp28" -> "SFP28", "QSFP+ " -> "QSFP+"."""
    if not port_type or not str(port_type).strip():
        return None
    return str(port_type).strip().upper()
