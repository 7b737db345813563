"""
Contract adapter: paged trace source plus classify bound to one contract.

A variant fixes the contract's signalling convention (native coin comments
vs. token forward payloads). The variant is chosen by configuration only;
running the wrong one against a contract classifies nothing.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, ClassVar

from lottery_indexer.adapters.client import ToncenterClient, TracePage
from lottery_indexer.classifier.engine import LotteryTransaction, TraceClassifier
from lottery_indexer.config.settings import ContractVariant, Settings
from lottery_indexer.lottery_logging import get_logger
from lottery_indexer.lottery_logging.logger import short
from lottery_indexer.ton.models import TokenRegistry, Trace

logger = get_logger(__name__)


class ContractAdapter:
    """Base adapter; subclasses set variant and the classifier conventions."""

    variant: ClassVar[ContractVariant]
    comment_signals: ClassVar[bool] = False

    def __init__(self, settings: Settings, client: ToncenterClient | None = None) -> None:
        self.settings = settings
        self.contract_address = settings.contract_address
        self.client = client or ToncenterClient(
            settings.api_endpoint,
            settings.api_key,
            request_timeout_sec=settings.request_timeout_sec,
            max_retries=settings.max_retries,
        )
        self.tokens = TokenRegistry()
        self.classifier = TraceClassifier(
            settings.contract_address,
            comment_signals=self.comment_signals,
            referral_policy=settings.referral_policy,
        )

    async def iter_pages(self, start_lt: int | None = None) -> AsyncIterator[TracePage]:
        """
        Yield pages in source order until an empty page, sleeping page_delay_sec
        between requests. Token metadata from each page is merged before it is yielded.
        """
        offset = 0
        limit = self.settings.page_limit
        while True:
            page = await self.client.fetch_traces_page(
                self.contract_address, offset=offset, limit=limit, start_lt=start_lt
            )
            if page.raw_count == 0:
                logger.info("adapter_pages_exhausted", contract=short(self.contract_address), offset=offset)
                return
            self.tokens.merge_metadata(page.metadata)
            yield page
            offset += limit
            if self.settings.page_delay_sec > 0:
                await asyncio.sleep(self.settings.page_delay_sec)

    def classify(self, trace: Trace) -> LotteryTransaction | None:
        return self.classifier.classify(trace, self.tokens)

    async def aclose(self) -> None:
        await self.client.aclose()

    def describe(self) -> dict[str, Any]:
        return {
            "variant": self.variant.value,
            "contract": short(self.contract_address),
            "comment_signals": self.comment_signals,
            "page_limit": self.settings.page_limit,
        }
