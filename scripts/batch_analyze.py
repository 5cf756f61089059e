"""Batch analyse recorded transcripts through the CallPulse engine.

Each input file is a JSON list of chunks, or an object with "chunks" plus
optional request fields (mode, sensitivity, privacyMode, nowMs, ...).

Usage:
    python scripts/batch_analyze.py [--data-dir data/transcripts] [--output-dir data/processed] [--mode deep]
"""

import sys
import json
import time
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from loguru import logger

from config import settings
from config.schemas import AnalysisMode
from pipeline.orchestrator import load_transcript, run_live_analysis
from pipeline.output_generator import export_all


def find_transcripts(data_dir: str) -> list[Path]:
    """All *.json transcript files under data_dir, sorted by path."""
    base = Path(data_dir)
    if not base.exists():
        return []
    return sorted(
        p for p in base.rglob("*.json")
        if not p.name.endswith("_analysis.json") and p.name != "batch_summary.json"
    )


def analyze_file(path: Path, mode: AnalysisMode | None, output_dir: Path) -> tuple[dict, object]:
    """Analyse one transcript file; returns (summary row, response)."""
    meeting_id, request, chunks = load_transcript(path)
    if mode is not None:
        request = request.model_copy(update={"mode": mode})

    response = run_live_analysis(meeting_id, request, stored_chunks=chunks)

    output_path = output_dir / f"{meeting_id}_analysis.json"
    with open(output_path, "w") as f:
        json.dump(response.model_dump(mode="json", by_alias=True), f, indent=2)

    metrics, summary = response.metrics, response.summary
    row = {
        "meeting_id": meeting_id,
        "file": path.name,
        "num_chunks": len(chunks),
        "call_health": metrics.call_health if metrics else None,
        "assessment": summary.overall_assessment.value if summary else None,
        "num_risks": len(metrics.risk_flags) if metrics else 0,
        "status": "success",
    }
    return row, response


def main():
    parser = argparse.ArgumentParser(description="Batch analyse transcript files")
    parser.add_argument("--data-dir", default="data/transcripts", help="Directory of transcript JSON files")
    parser.add_argument("--output-dir", default="data/processed", help="Output directory")
    parser.add_argument("--mode", choices=[m.value for m in AnalysisMode], default=None,
                        help="Override the analysis mode of every file")
    parser.add_argument("--export-dir", default=None, help="Also export CSV/JSONL here")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    files = find_transcripts(args.data_dir)
    logger.info(f"Found {len(files)} transcript files to analyse")

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    mode = AnalysisMode(args.mode) if args.mode else None

    results = []
    responses = []
    total_start = time.time()

    for i, path in enumerate(files):
        logger.info(f"Analysing {i+1}/{len(files)}: {path.name}")
        start = time.time()
        try:
            row, response = analyze_file(path, mode, output_dir)
            row["processing_time_ms"] = round((time.time() - start) * 1000, 1)
            results.append(row)
            responses.append(response)
            logger.info(f"Completed {path.name} — health={row['call_health']}, assessment={row['assessment']}")
        except Exception as e:
            elapsed = time.time() - start
            logger.error(f"FAILED {path.name} after {elapsed * 1000:.0f}ms: {e}")
            results.append({
                "file": path.name,
                "status": "failed",
                "error": str(e),
                "processing_time_ms": round(elapsed * 1000, 1),
            })

    total_elapsed = time.time() - total_start

    summary_path = output_dir / "batch_summary.json"
    with open(summary_path, "w") as f:
        json.dump(results, f, indent=2)

    if args.export_dir and responses:
        export_all(responses, args.export_dir)

    # Print results table
    print(f"\n{'='*80}")
    print(f"BATCH ANALYSIS COMPLETE — {len(results)} files in {total_elapsed:.1f}s")
    print(f"{'='*80}")
    print(f"{'File':<40} {'Chunks':>6} {'Health':>7} {'Risks':>5} {'Assessment':>10} {'Status':>7}")
    print("-" * 80)
    for r in results:
        name = r["file"][:39]
        chunks = str(r.get("num_chunks", "?"))
        health = str(r.get("call_health", "?"))
        risks = str(r.get("num_risks", "?"))
        assessment = str(r.get("assessment", "?"))
        print(f"{name:<40} {chunks:>6} {health:>7} {risks:>5} {assessment:>10} {r['status']:>7}")

    print(f"\nResults saved to: {summary_path}")
    succeeded = sum(1 for r in results if r["status"] == "success")
    print(f"Success: {succeeded}/{len(results)}")


if __name__ == "__main__":
    main()
