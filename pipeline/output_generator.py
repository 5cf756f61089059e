"""Output Generation — tabular and line-oriented exports of live-analysis results.

Exports analysed meetings to:
- CSV:   Flat summary per meeting (health, assessment, risks, talk ratios)
- CSV:   One row per insight, one row per client question follow-up
- JSONL: One full response per line (camelCase wire format)

Accepts both LiveAnalysisResponse objects and raw dicts (from loaded JSON files).
"""

import json
from pathlib import Path

import pandas as pd
from loguru import logger

from config.schemas import LiveAnalysisResponse


def _to_dict(record) -> dict:
    """Convert LiveAnalysisResponse or dict to a camelCase dict."""
    if isinstance(record, LiveAnalysisResponse):
        return record.model_dump(mode="json", by_alias=True)
    return record


# ── Primary exports ──


def export_to_csv(records: list, output_path: str) -> str:
    """Export one summary row per meeting as CSV."""
    rows = [_flatten_record(_to_dict(r)) for r in records]
    df = pd.DataFrame(rows)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"CSV exported: {output_path} ({len(rows)} meetings)")
    return output_path


def export_to_jsonl(records: list, output_path: str) -> str:
    """Export responses as JSON Lines (one response per line)."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        for record in records:
            f.write(json.dumps(_to_dict(record), default=str) + "\n")
    logger.info(f"JSONL exported: {output_path} ({len(records)} records)")
    return output_path


# ── Detailed exports ──


def export_insights_csv(records: list, output_path: str) -> str:
    """Export all insights to flat CSV (one row per insight)."""
    rows = []
    for r in records:
        d = _to_dict(r)
        for insight in d.get("insights") or []:
            rows.append({
                "meeting_id": d.get("meetingId"),
                "insight_id": insight.get("insightId"),
                "type": insight.get("type"),
                "severity": insight.get("severity"),
                "title": insight.get("title"),
                "detail": insight.get("detail"),
                "confidence": insight.get("confidence"),
                "timestamp_ms": insight.get("timestampMs"),
            })
    df = pd.DataFrame(rows, columns=[
        "meeting_id", "insight_id", "type", "severity", "title", "detail", "confidence", "timestamp_ms",
    ])
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"Insights CSV: {output_path} ({len(rows)} rows)")
    return output_path


def export_follow_ups_csv(records: list, output_path: str) -> str:
    """Export client-question follow-ups (one row per question)."""
    rows = []
    for r in records:
        d = _to_dict(r)
        summary = d.get("summary") or {}
        for follow_up in summary.get("questionFollowUps") or []:
            rows.append({
                "meeting_id": d.get("meetingId"),
                "question_id": follow_up.get("questionId"),
                "asked_at_ms": follow_up.get("askedAtMs"),
                "status": follow_up.get("status"),
                "question_text": follow_up.get("questionText"),
                "response_text": follow_up.get("responseText"),
            })
    df = pd.DataFrame(rows, columns=[
        "meeting_id", "question_id", "asked_at_ms", "status", "question_text", "response_text",
    ])
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"Follow-ups CSV: {output_path} ({len(rows)} rows)")
    return output_path


def export_all(records: list, output_dir: str = "data/exports") -> dict:
    """Export all formats at once.

    Returns dict of {format: output_path} for all exported files.
    """
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    outputs = {
        "summary_csv": export_to_csv(records, f"{output_dir}/meeting_summary.csv"),
        "insights_csv": export_insights_csv(records, f"{output_dir}/insights.csv"),
        "follow_ups_csv": export_follow_ups_csv(records, f"{output_dir}/follow_ups.csv"),
        "jsonl": export_to_jsonl(records, f"{output_dir}/analyses.jsonl"),
    }
    logger.info(f"All exports complete: {len(outputs)} files in {output_dir}/")
    return outputs


# ── Helper to load from JSON files ──


def load_records_from_dir(results_dir: str = "data/processed") -> list[dict]:
    """Load all saved analysis JSON files from a directory."""
    results_path = Path(results_dir)
    if not results_path.exists():
        return []

    records = []
    for f in sorted(results_path.glob("*_analysis.json")):
        try:
            with open(f) as fp:
                records.append(json.load(fp))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load {f}: {e}")

    logger.info(f"Loaded {len(records)} records from {results_dir}")
    return records


def _flatten_record(r: dict) -> dict:
    """Flatten a LiveAnalysisResponse dict to a single row for tabular export."""
    metrics = r.get("metrics") or {}
    summary = r.get("summary") or {}
    talk = metrics.get("talkDynamics") or {}
    coverage = metrics.get("topicCoverage") or {}
    follow_ups = summary.get("questionFollowUps") or []
    return {
        "meeting_id": r.get("meetingId"),
        "mode": r.get("mode"),
        "stream_status": r.get("streamStatus"),
        "window_start_ms": metrics.get("windowTsStartMs"),
        "window_end_ms": metrics.get("windowTsEndMs"),
        "call_health": metrics.get("callHealth"),
        "call_health_confidence": metrics.get("callHealthConfidence"),
        "client_valence": metrics.get("clientValence"),
        "client_engagement": metrics.get("clientEngagement"),
        "tone_confidence": metrics.get("toneConfidence"),
        "risk_flags": ";".join(metrics.get("riskFlags") or []),
        "num_risk_flags": len(metrics.get("riskFlags") or []),
        "checked_topics": ";".join(coverage.get("checkedTopics") or []),
        "talk_ratio_sales_pct": talk.get("talkRatioSalesPct"),
        "talk_ratio_client_pct": talk.get("talkRatioClientPct"),
        "interruptions": talk.get("interruptionsCount"),
        "assessment": summary.get("overallAssessment"),
        "num_missed_questions": sum(1 for q in follow_ups if q.get("status") == "missed"),
        "num_weak_answers": sum(1 for q in follow_ups if q.get("status") == "weak"),
        "num_insights": len(r.get("insights") or []),
        "headline": (summary.get("headline") or "")[:200],
    }
