#!/usr/bin/env python3
"""Example: Quickstart — bunyan-logtools

Rotate a bunyan log into a gzip file with a provenance sidecar while a
writer keeps appending to it, then prune old rotations.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install bunyan-logtools
"""
from __future__ import annotations

import fcntl
import json
import tempfile
import threading
import time
from pathlib import Path

import bunyan_logtools as blt


def _writer(log_path: Path, stop: threading.Event) -> None:
    """Append bunyan records, taking the same flock the rotator uses."""
    n = 0
    while not stop.is_set():
        record = {"name": "demo", "hostname": "localhost", "pid": 1, "level": 30, "msg": f"tick {n}", "v": 0}
        with log_path.open("ab") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            fh.write((json.dumps(record) + "\n").encode("utf-8"))
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        n += 1
        time.sleep(0.001)


def main() -> None:
    print(f"bunyan-logtools version: {blt.__version__}")

    with tempfile.TemporaryDirectory() as tmp:
        log_dir = Path(tmp)
        log_path = log_dir / "demo.log"
        log_path.touch()

        # Step 1: Start a writer that keeps appending
        stop = threading.Event()
        writer = threading.Thread(target=_writer, args=(log_path, stop))
        writer.start()
        time.sleep(0.2)

        # Step 2: Rotate while it runs
        options = blt.RotateOptions(sink_kind=blt.SinkKind.GZIP, metadata=True)
        output = log_dir / blt.format_output_name("demo.%Y%m%d%H%M%S.log.gz")
        result = blt.Rotator(options).rotate(log_path, output)
        stop.set()
        writer.join()

        print(f"Rotated {result.bytes_copied} bytes into {result.output_path.name}")
        print(f"Compressed size: {output.stat().st_size} bytes")
        if result.metadata_path is not None:
            print(result.metadata_path.read_text(encoding="utf-8"))

        # Step 3: Prune (dry run) everything older than one minute
        pruner = blt.Pruner(log_dir, blt.AgeMatcher(), max_age=60, dry_run=True)
        report = pruner.run(now=time.time() + 3600)
        print(f"Would prune: {report.matched}")


if __name__ == "__main__":
    main()
