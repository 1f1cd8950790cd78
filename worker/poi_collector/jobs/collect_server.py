"""HTTP entrypoint that triggers region collection jobs."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

from flask import Flask, jsonify, request

from poi_collector.core.collector import build_collector
from poi_collector.core.config import get_settings
from poi_collector.core.db import ensure_schema
from poi_collector.core.ledger import ScanLedger
from poi_collector.core.regions import find_region, load_regions
from poi_collector.models import RegionArea

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
# One collection at a time; each run fans out on its own scan pool.
_executor = ThreadPoolExecutor(max_workers=1)

# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "regions_file": settings.regions_file,
            }
        ),
        200,
    )


@app.post("/collect")
def enqueue_collection() -> Any:
    """
    Queue a collection run.
    Required JSON fields: region
    Optional: keyword (falls back to COLLECTOR_KEYWORD)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    region_name = str(payload.get("region") or "").strip()
    if not region_name:
        return jsonify({"error": "missing fields: region"}), 400

    keyword = str(payload.get("keyword") or get_settings().default_keyword or "").strip()
    if not keyword:
        return jsonify({"error": "keyword is required"}), 400

    try:
        regions = _load_regions()
    except (OSError, ValueError) as exc:
        logger.error("Unable to load regions: %s", exc)
        return jsonify({"error": "regions are not available"}), 500

    region = find_region(regions, region_name)
    if region is None:
        return jsonify({"error": f"region '{region_name}' not found"}), 404

    logger.info("Queueing collection job: region=%s keyword=%s", region.name, keyword)
    _executor.submit(_run_job_safe, {"region": region, "keyword": keyword})

    return jsonify({"data": {"status": "queued", "region": region.name, "keyword": keyword}}), 202


@app.get("/collect/<region_name>/status")
def collection_status(region_name: str) -> Any:
    keyword = str(request.args.get("keyword") or get_settings().default_keyword or "").strip()
    if not keyword:
        return jsonify({"error": "keyword is required"}), 400

    try:
        counts = ScanLedger().status_counts(region_name, keyword)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Status lookup failed for %s/%s: %s", region_name, keyword, exc)
        return jsonify({"error": "status lookup failed"}), 500

    return jsonify({"data": {"region": region_name, "keyword": keyword, "cells": counts}}), 200


# ---------- Internals ----------


def _load_regions() -> List[RegionArea]:
    regions_file = get_settings().regions_file
    if not regions_file:
        raise ValueError("REGIONS_FILE is not configured")
    return load_regions(regions_file)


def run_collection(region: RegionArea, keyword: str) -> None:
    collector = build_collector()
    ensure_schema()
    with collector:
        collector.collect(region, keyword)


def _run_job_safe(job_args: Dict[str, Any]) -> None:
    try:
        run_collection(**job_args)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Collection job failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
