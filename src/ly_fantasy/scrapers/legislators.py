"""Legislator roster from the LY open-data portal (dataset 9).

The portal has no stable member id field; the numeric file name of the
portrait (``.../Legislators/110001.jpg``) is used as the external id.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from .. import config as cfg
from ..errors import FetchError
from ..http import fetch_with_retry, json_or_none
from ..models import LegislatorRecord

LOGGER = logging.getLogger(__name__)

_RE_PIC_ID = re.compile(r"/(\d+)\.jpg")


def extract_external_id(pic_url: str | None) -> str | None:
    """
    >>> extract_external_id("http://www.ly.gov.tw//Images/Legislators/110001.jpg")
    '110001'
    """
    if not pic_url:
        return None
    match = _RE_PIC_ID.search(pic_url)
    return match.group(1) if match else None


def parse_legislator(raw: dict[str, Any]) -> LegislatorRecord | None:
    external_id = extract_external_id(raw.get("picUrl"))
    if external_id is None:
        return None
    return LegislatorRecord(
        external_id=external_id,
        name_ch=str(raw.get("name") or "").strip(),
        name_en=str(raw.get("ename") or "").strip(),
        party=str(raw.get("party") or ""),
        sex=str(raw.get("sex") or ""),
        pic_url=str(raw.get("picUrl") or ""),
        area_name=str(raw.get("areaName") or ""),
        committee=str(raw.get("committee") or ""),
        onboard_date=str(raw.get("onboardDate") or ""),
        leave_flag=str(raw.get("leaveFlag") or ""),
        leave_date=str(raw.get("leaveDate") or ""),
        leave_reason=str(raw.get("leaveReason") or ""),
    )


async def fetch_legislators(
    client: httpx.AsyncClient, *, select_term: str = "all"
) -> tuple[list[LegislatorRecord], list[str]]:
    """Fetch the roster.  Returns ``(records, rejected picUrls)``.

    Any failure to reach the list propagates; there is nothing to sync without it.
    """
    params = {"id": cfg.LEGISLATOR_DATASET_ID, "selectTerm": select_term, "page": 1}
    response = await fetch_with_retry(client, cfg.LY_OPEN_DATA_URL, params=params)
    if not response.is_success:
        raise FetchError(
            f"API returned status {response.status_code}",
            url=str(response.url),
            status_code=response.status_code,
        )
    data = json_or_none(response)
    if not isinstance(data, dict) or not isinstance(data.get("jsonList"), list):
        raise FetchError("Legislator list has no jsonList", url=str(response.url))

    records: list[LegislatorRecord] = []
    rejected: list[str] = []
    for raw in data["jsonList"]:
        record = parse_legislator(raw) if isinstance(raw, dict) else None
        if record is None or not record.name_ch:
            pic = raw.get("picUrl") if isinstance(raw, dict) else None
            LOGGER.warning("Could not extract id from picUrl: %s", pic)
            rejected.append(str(pic))
            continue
        records.append(record)
    LOGGER.info("Fetched %d legislators (%d rejected)", len(records), len(rejected))
    return records, rejected
