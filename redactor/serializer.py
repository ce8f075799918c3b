"""
Serialization of the redaction audit.

Each record is a RedactedRegion: the clamped display-space region a
redaction actually touched, its policy, the detection confidence, and the
effective blur kernel. Records are grouped by frame id.

JSON layout:
    {
        "frames": [{"frame_id": 0, "regions": [{...}, ...]}, ...],
        "summary": {"frames": N, "regions": M, "by_policy": {"blur": M}}
    }

CSV layout: one row per region, columns CSV_FIELDS.
"""

import csv
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from redactor.redaction import RedactedRegion

logger = logging.getLogger(__name__)

CSV_FIELDS = ["frame_id", "policy", "x", "y", "width", "height", "confidence", "kernel_size"]

RegionsByFrame = Dict[int, List[RedactedRegion]]


def _records(regions_by_frame: RegionsByFrame) -> Iterator[Tuple[int, RedactedRegion]]:
    for frame_id in sorted(regions_by_frame):
        for region in regions_by_frame[frame_id]:
            yield frame_id, region


def summarize(regions_by_frame: RegionsByFrame) -> dict:
    """Frame, region, and per-policy counts for an audit."""
    by_policy = Counter(region.policy for _, region in _records(regions_by_frame))
    return {
        "frames": len(regions_by_frame),
        "regions": sum(by_policy.values()),
        "by_policy": dict(by_policy),
    }


def write_json(regions_by_frame: RegionsByFrame, output_path: str) -> dict:
    """Write the audit as JSON. Returns the summary.

    Raises:
        OSError: If the output path is not writable.
    """
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    summary = summarize(regions_by_frame)
    payload = {
        "frames": [
            {
                "frame_id": frame_id,
                "regions": [r.to_dict() for r in regions_by_frame[frame_id]],
            }
            for frame_id in sorted(regions_by_frame)
        ],
        "summary": summary,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "Redaction audit saved: %s (%d frames, %d regions)",
        output_path, summary["frames"], summary["regions"],
    )
    return summary


def write_csv(regions_by_frame: RegionsByFrame, output_path: str) -> dict:
    """Write the audit as CSV, one row per region. Returns the summary.

    Frames with no regions produce no rows.

    Raises:
        OSError: If the output path is not writable.
    """
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        writer.writerows(
            {"frame_id": frame_id, **region.to_dict()}
            for frame_id, region in _records(regions_by_frame)
        )

    summary = summarize(regions_by_frame)
    logger.info("Redaction audit saved: %s (%d rows)", output_path, summary["regions"])
    return summary
