"""
Reseller ranking aggregation.

Builds the public leaderboard of resellers by credits earned. The ranking
is all-or-nothing: if any lookup fails, no partial ranking is returned.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, List, Set, Tuple

from .errors import RankingUnavailable
from credit_panel.storage.models import GenerationRecord, RankingEntry
from credit_panel.storage.repository import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_CREDITS = Decimal("50")
DEFAULT_LIMIT = 10
DEFAULT_PAGE_SIZE = 1000
DEFAULT_IDENTITY_PAGE_SIZE = 1000

_NON_LETTERS = re.compile(r"[^a-zA-Z]")


def mask_display_name(email: str) -> str:
    """Short public handle derived from an email's local part.

    ``"joaosilva@x.com"`` becomes ``"Joaos..."``; local parts with fewer
    than two letters become ``"User***"``.
    """
    local = (email or "").split("@")[0] or "user"
    clean = _NON_LETTERS.sub("", local)
    if len(clean) < 2:
        return "User***"
    shown = clean[:5]
    return shown[0].upper() + shown[1:].lower() + "..."


def fetch_all_generations(store: RecordStore, page_size: int = DEFAULT_PAGE_SIZE) -> List[GenerationRecord]:
    """Read every ranked generation, page by page, past the store's row cap."""
    records: List[GenerationRecord] = []
    offset = 0
    while True:
        page = store.fetch_generations(offset, page_size)
        if not page:
            break
        records.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
    return records


def aggregate_credits(records: List[GenerationRecord]) -> Dict[str, Decimal]:
    """Sum credits earned per user, preserving first-seen order."""
    totals: Dict[str, Decimal] = {}
    for record in records:
        if not record.user_id:
            continue
        totals[record.user_id] = totals.get(record.user_id, Decimal("0")) + record.credits_earned
    return totals


def select_top(
    totals: Dict[str, Decimal],
    excluded: Set[str],
    min_credits: Decimal = DEFAULT_MIN_CREDITS,
    limit: int = DEFAULT_LIMIT
) -> List[Tuple[str, Decimal]]:
    """Top (user_id, credits) pairs after exclusions and the minimum threshold."""
    eligible = [
        (user_id, credits)
        for user_id, credits in totals.items()
        if user_id not in excluded and credits >= min_credits
    ]
    # sorted() is stable, ties keep first-seen order
    eligible = sorted(eligible, key=lambda item: item[1], reverse=True)
    return eligible[:limit]


def build_ranking(
    store: RecordStore,
    min_credits: Decimal = DEFAULT_MIN_CREDITS,
    limit: int = DEFAULT_LIMIT,
    page_size: int = DEFAULT_PAGE_SIZE,
    identity_page_size: int = DEFAULT_IDENTITY_PAGE_SIZE
) -> List[RankingEntry]:
    """Build the reseller leaderboard.

    Exclusion lists and the generation log are fetched concurrently. Banned
    users, admins and users with a negative balance never appear.

    Args:
        store: Record store to read from
        min_credits: Smallest total (inclusive) a user needs to be ranked
        limit: Number of positions to return
        page_size: Rows per generation-log page
        identity_page_size: Identities listed to resolve display names

    Returns:
        Ranking entries ordered by position, empty if nobody qualifies

    Raises:
        RankingUnavailable: If any store lookup fails
    """
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            banned = pool.submit(store.list_banned_user_ids)
            admins = pool.submit(store.list_admin_user_ids)
            negative = pool.submit(store.list_negative_balance_user_ids)
            generations = pool.submit(fetch_all_generations, store, page_size)

            excluded = banned.result() | admins.result() | negative.result()
            records = generations.result()

        top = select_top(aggregate_credits(records), excluded, Decimal(str(min_credits)), limit)
        if not top:
            return []

        emails = store.list_user_emails(per_page=identity_page_size)
    except Exception as e:
        logger.exception("Reseller ranking failed")
        raise RankingUnavailable() from e

    return [
        RankingEntry(
            position=position,
            masked_name=mask_display_name(emails.get(user_id) or "user"),
            credits=credits
        )
        for position, (user_id, credits) in enumerate(top, start=1)
    ]
