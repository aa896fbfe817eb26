"""Workshop settings.

Values come from the environment (optionally a ``.env`` file). GitHub
credentials are resolved by ``gh.get_token`` from ``GH_TOKEN``/``GITHUB_TOKEN``.
"""

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from gh import GitHubClient

logger = logging.getLogger(__name__)

ENV_PREFIX = "WORKSHOP_"
DEFAULT_TOPIC_LIST = ["open-data", "open-access", "open-code", "preprints", "preregistration"]


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class WorkshopSettings(BaseModel):
    """Settings shared by the store, installer and CLI."""

    api_base: str = GitHubClient.BASE_URL
    search_topic: str = "ukrn-open-research"
    template_topic: str = "ukrn-wb-template"
    workshop_topics: list[str] = Field(
        default_factory=lambda: ["ukrn-open-research", "ukrn-workshop"]
    )
    topic_list: list[str] = Field(default_factory=lambda: list(DEFAULT_TOPIC_LIST))
    commit_message: str = "{path} update by Workshop Builder"
    order_step: int = 100000
    dependency_matcher: str = "images"
    cache_file: str = ".workshop-cache.json"

    @classmethod
    def from_env(cls) -> "WorkshopSettings":
        """Build settings from ``WORKSHOP_*`` variables."""
        load_dotenv()
        defaults = cls()
        settings = cls(
            api_base=os.environ.get(ENV_PREFIX + "API_BASE", defaults.api_base),
            search_topic=os.environ.get(ENV_PREFIX + "SEARCH_TOPIC", defaults.search_topic),
            template_topic=os.environ.get(
                ENV_PREFIX + "TEMPLATE_TOPIC", defaults.template_topic
            ),
            workshop_topics=_env_list("WORKSHOP_TOPICS", defaults.workshop_topics),
            topic_list=_env_list("TOPIC_LIST", defaults.topic_list),
            commit_message=os.environ.get(
                ENV_PREFIX + "COMMIT_MESSAGE", defaults.commit_message
            ),
            order_step=int(os.environ.get(ENV_PREFIX + "ORDER_STEP", defaults.order_step)),
            dependency_matcher=os.environ.get(
                ENV_PREFIX + "DEPENDENCY_MATCHER", defaults.dependency_matcher
            ),
            cache_file=os.environ.get(ENV_PREFIX + "CACHE_FILE", defaults.cache_file),
        )
        logger.debug("Settings loaded: %s", settings.model_dump())
        return settings
