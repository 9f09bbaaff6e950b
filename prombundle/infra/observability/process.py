from __future__ import annotations

from dataclasses import dataclass

import psutil


@dataclass(frozen=True, slots=True)
class MemoryUsage:
    total_bytes: int
    used_bytes: int


def read_memory_usage() -> MemoryUsage:
    info = psutil.Process().memory_info()
    return MemoryUsage(total_bytes=info.vms, used_bytes=info.rss)
