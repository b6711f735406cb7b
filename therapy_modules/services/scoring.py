"""Total score, choice derivation and score-band resolution."""
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.errors import InvalidScoreBands
from therapy_modules.models.question import ScoreBand

logger = logging.getLogger(__name__)


def compute_total_score(answers: Iterable[dict[str, Any]]) -> int:
    """Sum of chosen scores; a missing score counts as 0."""
    return sum(int(a.get("chosen_score") or 0) for a in answers)


def derive_choice(choices: Sequence[dict[str, Any]], chosen_score) -> tuple[int | None, str | None]:
    """Index and text of the first choice whose score equals ``chosen_score``."""
    if chosen_score is None:
        return None, None
    for index, choice in enumerate(choices or []):
        if choice.get("score") == chosen_score:
            return index, choice.get("text")
    return None, None


def _band_sort_key(band) -> tuple:
    return (band.min, band.max, band.id or 0)


def find_overlaps(bands: Sequence[Any]) -> list[tuple[Any, Any]]:
    """Pairs of bands whose inclusive ranges intersect, in ascending order."""
    ordered = sorted(bands, key=_band_sort_key)
    overlaps = []
    for i, left in enumerate(ordered):
        for right in ordered[i + 1:]:
            if right.min > left.max:
                break
            overlaps.append((left, right))
    return overlaps


def validate_bands(bands: Sequence[Any]) -> None:
    """Reject inverted ranges and overlapping bands at authoring time."""
    inverted = [b for b in bands if b.min > b.max]
    if inverted:
        raise InvalidScoreBands(
            "Score band min must not exceed max",
            detail=[{"label": b.label, "min": b.min, "max": b.max} for b in inverted],
        )
    overlaps = find_overlaps(bands)
    if overlaps:
        raise InvalidScoreBands(
            detail=[
                {"first": left.label, "second": right.label, "range": [right.min, min(left.max, right.max)]}
                for left, right in overlaps
            ]
        )


def find_band(bands: Sequence[Any], score: int | None):
    """
    Band whose inclusive range contains ``score``, or None.

    Bands are expected to be disjoint. If they are not, the lowest
    (min, max, id) band wins so the outcome never depends on storage order;
    a score that falls in a gap resolves to no band.
    """
    if score is None:
        return None
    for band in sorted(bands, key=_band_sort_key):
        if band.min <= score <= band.max:
            return band
    return None


async def load_bands(db: AsyncSession, module_ids: Iterable[int]) -> dict[int, list[ScoreBand]]:
    """Score bands grouped by module id."""
    ids = set(module_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(ScoreBand).where(ScoreBand.module_id.in_(ids)).order_by(ScoreBand.min, ScoreBand.max, ScoreBand.id)
    )
    grouped: dict[int, list[ScoreBand]] = {module_id: [] for module_id in ids}
    for band in result.scalars():
        grouped[band.module_id].append(band)
    return grouped


async def resolve_score_band(db: AsyncSession, module_id: int, total_score: int) -> ScoreBand | None:
    bands = (await load_bands(db, [module_id])).get(module_id, [])
    if find_overlaps(bands):
        logger.warning("Module %s has overlapping score bands; using lowest matching band", module_id)
    return find_band(bands, total_score)


async def create_score_band(
    db: AsyncSession,
    module_id: int,
    min_score: int,
    max_score: int,
    label: str,
    interpretation: str = "",
) -> ScoreBand:
    """Add a band to a module, rejecting it if it overlaps an existing one."""
    existing = (await load_bands(db, [module_id])).get(module_id, [])
    band = ScoreBand(
        module_id=module_id,
        min=min_score,
        max=max_score,
        label=label,
        interpretation=interpretation,
    )
    validate_bands([*existing, band])
    db.add(band)
    await db.commit()
    await db.refresh(band)
    logger.info("Score band %r [%s, %s] added to module %s", label, min_score, max_score, module_id)
    return band
