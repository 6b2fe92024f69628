"""Load both sources and assemble the dashboard context.

Each source is read in a worker thread so the two loads overlap. A source that
cannot be read or parsed is reported as unavailable and replaced by an empty
record list; it never discards what the other source produced.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from signup_trends.data import parse_delimited_text, parse_platform_json, read_source_text
from signup_trends.metrics_activity import build_platform_users, compute_activity_snapshot, compute_platform_activity
from signup_trends.metrics_signups import build_cohorts, compute_signup_trends
from signup_trends.models import DashboardResult, PlatformUserRecord, SourceResult
from signup_trends.settings import DashboardConfig

logger = logging.getLogger(__name__)


def _read_signups(config: DashboardConfig) -> List[Dict[str, Any]]:
    text = read_source_text(config.signups_source, timeout=config.request_timeout)
    return parse_delimited_text(text)


def _read_platform_users(config: DashboardConfig, now: datetime) -> List[PlatformUserRecord]:
    text = read_source_text(config.platform_source, timeout=config.request_timeout)
    return build_platform_users(parse_platform_json(text), config, now=now)


async def load_signups(config: DashboardConfig) -> SourceResult:
    try:
        records = await asyncio.to_thread(_read_signups, config)
    except Exception as exc:
        logger.exception("signups load failed")
        return SourceResult.unavailable(config.signups_source, exc)
    logger.info("loaded %d signup row(s) from %s", len(records), config.signups_source)
    return SourceResult.loaded(config.signups_source, records)


async def load_platform_users(config: DashboardConfig, now: Optional[datetime] = None) -> SourceResult:
    now = now or datetime.now()
    try:
        records = await asyncio.to_thread(_read_platform_users, config, now)
    except Exception as exc:
        logger.exception("platform users load failed")
        return SourceResult.unavailable(config.platform_source, exc)
    logger.info("loaded %d platform user(s) from %s", len(records), config.platform_source)
    return SourceResult.loaded(config.platform_source, records)


async def load_dashboard_data(config: Optional[DashboardConfig] = None, now: Optional[datetime] = None) -> DashboardResult:
    config = config or DashboardConfig()
    now = now or datetime.now()
    signups, platform = await asyncio.gather(load_signups(config), load_platform_users(config, now=now))

    try:
        cohorts = build_cohorts(signups.records, config)
    except Exception as exc:
        logger.exception("signup cohorts failed")
        signups = SourceResult.unavailable(config.signups_source, exc)
        cohorts = build_cohorts([], config)

    try:
        activity = compute_activity_snapshot(platform.records, now=now, config=config)
    except Exception as exc:
        logger.exception("platform activity failed")
        platform = SourceResult.unavailable(config.platform_source, exc)
        activity = compute_activity_snapshot([], now=now, config=config)

    result = DashboardResult(signups=signups, platform=platform, cohorts=cohorts, activity=activity)
    if result.status != "ok":
        logger.warning("dashboard data %s: signups=%s platform=%s", result.status, signups.status, platform.status)
    return result


def prepare_context(config: DashboardConfig, result: DashboardResult) -> Dict[str, Any]:
    return {
        "config": config,
        "status": result.status,
        "signups": result.signups,
        "platform": result.platform,
        "cohorts": result.cohorts,
        "activity": result.activity,
    }


def compute_dashboard(config: DashboardConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "status": ctx.get("status", "unavailable"),
        "signups": compute_signup_trends(config, ctx),
        "activity": compute_platform_activity(config, ctx),
    }
