"""Episode order keys."""

import logging
from typing import Any, Iterable

from .exceptions import MainRepositoryError
from .store import WorkshopStore

logger = logging.getLogger(__name__)

ORDER_STEP = 100000


def _order(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def rewrite_episode_orders(
    store: WorkshopStore,
    day_id: Any,
    ignore: Iterable[str] = (),
    step: int = ORDER_STEP,
) -> dict[str, int]:
    """
    Renumber a day's episodes as step, 2*step, ... keeping their order.

    Episodes whose URL is in ``ignore`` keep their order key and take no
    slot in the numbering.

    Returns:
        New order key by episode URL
    """
    main = store.repository()
    if main is None:
        raise MainRepositoryError("Cannot reorder episodes without a main repository")
    ignore = set(ignore)
    episodes = sorted(
        (e for e in main.episodes if e.yaml.get("day") == day_id),
        key=lambda e: _order(e.yaml.get("order")),
    )

    orders: dict[str, int] = {}
    order = 0
    for episode in episodes:
        if episode.url in ignore:
            continue
        order += step
        logger.debug("(%s) %s => %d", day_id, episode.path, order)
        store.set_file_content_from_yaml(episode.url, {**episode.yaml, "order": order})
        orders[episode.url] = order
    return orders
