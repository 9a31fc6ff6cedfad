"""Benchmark: Rotation throughput — raw copy vs. gzip at several levels.

Rotates a synthetic bunyan log of fixed size repeatedly and reports MB/s
for each sink configuration.
"""
from __future__ import annotations

import json
import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bunyan_logtools.rotate.copier import RotateOptions, Rotator
from bunyan_logtools.rotate.sinks import SinkKind

_ITERATIONS: int = 5
_LOG_BYTES: int = 4 * 1024 * 1024


def _make_log(size: int) -> bytes:
    """Build a bunyan-looking payload of exactly ``size`` bytes."""
    lines: list[bytes] = []
    total = 0
    i = 0
    while total < size:
        line = json.dumps(
            {"name": "bench", "hostname": "h", "pid": 7, "level": 30, "msg": f"req {i}", "v": 0}
        ).encode("utf-8") + b"\n"
        lines.append(line)
        total += len(line)
        i += 1
    return b"".join(lines)[:size]


def bench_rotate_throughput(
    sink_kind: SinkKind = SinkKind.GZIP, level: int = -1
) -> dict[str, object]:
    """Benchmark Rotator.rotate() over a fixed-size log.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, mb_per_second.
    """
    payload = _make_log(_LOG_BYTES)
    rotator = Rotator(RotateOptions(sink_kind=sink_kind, level=level, metadata=True))

    latencies_ms: list[float] = []
    with tempfile.TemporaryDirectory() as tmp:
        log_path = Path(tmp) / "bench.log"
        for i in range(_ITERATIONS):
            log_path.write_bytes(payload)
            t0 = time.perf_counter()
            rotator.rotate(log_path, Path(tmp) / f"bench.{i}.out")
            latencies_ms.append((time.perf_counter() - t0) * 1000)

    total = sum(latencies_ms) / 1000
    result: dict[str, object] = {
        "operation": f"rotate_{sink_kind.value}_l{level}",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 2),
        "avg_latency_ms": round(sum(latencies_ms) / len(latencies_ms), 3),
        "mb_per_second": round(_ITERATIONS * _LOG_BYTES / (1024 * 1024) / total, 2),
    }
    print(
        f"[bench_rotate_throughput] {result['operation']}: "
        f"{result['mb_per_second']} MB/s  "
        f"mean={result['avg_latency_ms']}ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_rotate_throughput()


if __name__ == "__main__":
    for kind, level in ((SinkKind.RAW, -1), (SinkKind.GZIP, 1), (SinkKind.GZIP, -1), (SinkKind.GZIP, 9)):
        bench_rotate_throughput(kind, level)
