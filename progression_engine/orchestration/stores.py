# ABOUTME: ProgressStore implementations: in-memory for a single process, Redis for shared deployments.
# ABOUTME: save_progress is a compare-and-set so concurrent advances can't skip or double-increment rounds.

import json

from loguru import logger
from redis import WatchError
from redis.asyncio import Redis as AsyncRedis

from progression_engine.models.progression import CampaignProgress
from progression_engine.models.summaries import (
    SummaryCheckpoint,
    SummaryKind,
    SummaryObligation,
)


class InMemoryProgressStore:
    """Progress store for a single process (tests, CLI, single-instance deployments)"""

    def __init__(self):
        self._progress: dict[str, CampaignProgress] = {}
        self._checkpoints: dict[str, SummaryCheckpoint] = {}
        self.summaries: dict[str, list[tuple[SummaryObligation, str]]] = {}
        self.chapter_summaries: dict[str, dict[int, str]] = {}

    async def load_progress(self, campaign_id: str) -> CampaignProgress | None:
        return self._progress.get(campaign_id)

    async def save_progress(
        self,
        campaign_id: str,
        expected: CampaignProgress | None,
        progress: CampaignProgress
    ) -> bool:
        if self._progress.get(campaign_id) != expected:
            return False
        self._progress[campaign_id] = progress
        return True

    async def load_checkpoint(self, campaign_id: str) -> SummaryCheckpoint:
        return self._checkpoints.get(campaign_id, SummaryCheckpoint())

    async def save_checkpoint(self, campaign_id: str, checkpoint: SummaryCheckpoint) -> None:
        self._checkpoints[campaign_id] = checkpoint

    async def save_summary(self, campaign_id: str, obligation: SummaryObligation, text: str) -> None:
        self.summaries.setdefault(campaign_id, []).append((obligation, text))
        if obligation.kind == SummaryKind.CHAPTER and obligation.chapter is not None:
            self.chapter_summaries.setdefault(campaign_id, {})[obligation.chapter] = text

    def latest_summary(self, campaign_id: str, kind: SummaryKind = SummaryKind.ORDINARY) -> str | None:
        """Most recent stored summary text of a kind"""
        for obligation, text in reversed(self.summaries.get(campaign_id, [])):
            if obligation.kind == kind:
                return text
        return None


class RedisProgressStore:
    """
    Progress store shared through Redis over the asyncio client.

    Keys:
    - campaign:{id}:progress    JSON CampaignProgress (compare-and-set via WATCH)
    - campaign:{id}:checkpoint  JSON SummaryCheckpoint
    - campaign:{id}:summaries   list of JSON {obligation, text}
    - campaign:{id}:chapters    hash chapter -> summary text
    """

    def __init__(self, redis_client: AsyncRedis, key_prefix: str = "campaign"):
        """
        Initialize store.

        Args:
            redis_client: Async Redis connection
            key_prefix: Namespace for campaign keys
        """
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _key(self, campaign_id: str, suffix: str) -> str:
        return f"{self.key_prefix}:{campaign_id}:{suffix}"

    async def load_progress(self, campaign_id: str) -> CampaignProgress | None:
        raw = await self.redis.get(self._key(campaign_id, "progress"))
        if raw is None:
            return None
        return CampaignProgress.model_validate_json(raw)

    async def save_progress(
        self,
        campaign_id: str,
        expected: CampaignProgress | None,
        progress: CampaignProgress
    ) -> bool:
        """
        Write progress only if the stored value still equals expected.

        Returns:
            True when written, False when another writer got there first
        """
        key = self._key(campaign_id, "progress")

        async with self.redis.pipeline() as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                current = CampaignProgress.model_validate_json(raw) if raw is not None else None

                if current != expected:
                    await pipe.unwatch()
                    logger.debug(f"Progress compare-and-set lost for campaign {campaign_id}")
                    return False

                pipe.multi()
                pipe.set(key, progress.model_dump_json())
                await pipe.execute()
                return True

            except WatchError:
                logger.debug(f"Progress key changed during write for campaign {campaign_id}")
                return False

    async def load_checkpoint(self, campaign_id: str) -> SummaryCheckpoint:
        raw = await self.redis.get(self._key(campaign_id, "checkpoint"))
        if raw is None:
            return SummaryCheckpoint()
        return SummaryCheckpoint.model_validate_json(raw)

    async def save_checkpoint(self, campaign_id: str, checkpoint: SummaryCheckpoint) -> None:
        await self.redis.set(self._key(campaign_id, "checkpoint"), checkpoint.model_dump_json())

    async def save_summary(self, campaign_id: str, obligation: SummaryObligation, text: str) -> None:
        entry = json.dumps({"obligation": obligation.model_dump(mode="json"), "text": text})
        await self.redis.rpush(self._key(campaign_id, "summaries"), entry)

        if obligation.kind == SummaryKind.CHAPTER and obligation.chapter is not None:
            await self.redis.hset(self._key(campaign_id, "chapters"), str(obligation.chapter), text)
