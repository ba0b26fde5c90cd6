from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .client import MisskeyClient, request_log_hook
from .commands import DEFAULT_PAGE_SIZE, ChannelTimelineRequest
from .config import RuntimeSecrets
from .config_schema import AppConfig
from .errors import ConfigError
from .ids import ChannelId, NoteId, UserId
from .models import Note
from .run_log import RunLogger
from .sink import JsonLinesSink
from .throttle import SleepFn, sleep_ms

RUNNING = "running"
DONE = "done"


class TimelineSource(Protocol):
    def fetch_channel_timeline(self, request: ChannelTimelineRequest) -> list[Note]: ...


@dataclass(frozen=True)
class CrawlResult:
    pages: int
    notes: int
    cursor: NoteId | None
    users: frozenset[UserId]


def oldest_note_id(page: list[Note]) -> NoteId:
    """Id of the earliest-created note; the first one wins on equal timestamps."""
    if not page:
        raise ValueError("page must be non-empty")
    return min(page, key=lambda n: n.created_at).id


class ChannelCrawler:
    """
    Pages a channel timeline from newest to oldest.

    Each step requests notes strictly older than the cursor (and newer than the
    fixed since_id, if any). A non-empty page is written to the sink as one
    JSON array, its authors are added to the user set and the cursor moves to
    the page's oldest note. The first empty page ends the crawl.
    """

    def __init__(
        self,
        client: TimelineSource,
        *,
        channel_id: ChannelId,
        sink: JsonLinesSink,
        page_size: int = DEFAULT_PAGE_SIZE,
        since_id: NoteId | None = None,
        until_id: NoteId | None = None,
        delay_ms: int = 10000,
        logger: RunLogger | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")

        self._client = client
        self._channel_id = channel_id
        self._sink = sink
        self._page_size = int(page_size)
        self._since_id = since_id
        self._cursor = until_id
        self._delay_ms = int(delay_ms)
        self._logger = logger
        self._sleep_fn = sleep_fn

        self._state = RUNNING
        self._users: set[UserId] = set()
        self._pages = 0
        self._notes = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def done(self) -> bool:
        return self._state == DONE

    @property
    def cursor(self) -> NoteId | None:
        return self._cursor

    @property
    def users(self) -> frozenset[UserId]:
        return frozenset(self._users)

    def next_request(self) -> ChannelTimelineRequest:
        return ChannelTimelineRequest(
            channel_id=self._channel_id,
            limit=self._page_size,
            since_id=self._since_id,
            until_id=self._cursor,
        )

    def step(self) -> list[Note] | None:
        """Fetch one page. Returns None once the timeline is exhausted."""
        if self.done:
            raise RuntimeError("crawl already finished")

        page = self._client.fetch_channel_timeline(self.next_request())

        if not page:
            self._state = DONE
            if self._logger is not None:
                self._logger.info(
                    "crawl_exhausted",
                    f"no notes older than {self._cursor or 'the newest note'}",
                    pages=self._pages,
                    notes=self._notes,
                )
            return None

        for note in page:
            self._users.add(note.user.id)

        self._sink.write([note.to_wire() for note in page])
        self._pages += 1
        self._notes += len(page)

        self._cursor = oldest_note_id(page)

        if self._logger is not None:
            self._logger.info(
                "page_archived",
                f"proceeded by {self._cursor}",
                page=self._pages,
                notes=len(page),
                users=len(self._users),
            )

        self._pause()
        return page

    def run(self) -> CrawlResult:
        while not self.done:
            self.step()
        return self.result()

    def result(self) -> CrawlResult:
        return CrawlResult(
            pages=self._pages,
            notes=self._notes,
            cursor=self._cursor,
            users=self.users,
        )

    def _pause(self) -> None:
        if self._delay_ms <= 0:
            return
        if self._logger is not None:
            self._logger.info("sleep", f"sleeping {self._delay_ms} ms", delay_ms=self._delay_ms)
        sleep_ms(self._delay_ms, self._sleep_fn)


def crawl_channel(
    config: AppConfig,
    secrets: RuntimeSecrets,
    *,
    sink: JsonLinesSink,
    logger: RunLogger | None = None,
    client: TimelineSource | None = None,
    sleep_fn: SleepFn | None = None,
    channel_id: ChannelId | None = None,
    since_id: NoteId | None = None,
    until_id: NoteId | None = None,
) -> CrawlResult:
    """
    Crawl a channel using configuration values, with explicit arguments winning.
    """
    cid = channel_id or config.crawl.channel_id
    if not cid:
        raise ConfigError("A channel id is required (crawl.channel_id or --channel-id)")

    owned: MisskeyClient | None = None
    if client is None:
        owned = MisskeyClient(
            config.instance.host,
            secrets.token,
            timeout_seconds=config.instance.timeout_seconds,
            on_request=request_log_hook(logger),
        )
        client = owned

    crawler = ChannelCrawler(
        client,
        channel_id=ChannelId(cid),
        sink=sink,
        page_size=config.crawl.page_size,
        since_id=since_id or _as_note_id(config.crawl.since_id),
        until_id=until_id or _as_note_id(config.crawl.until_id),
        delay_ms=config.throttle.delay_ms,
        logger=logger,
        sleep_fn=sleep_fn,
    )

    if logger is not None:
        logger.info(
            "crawl_started",
            f"crawling channel {cid}",
            channel_id=cid,
            since_id=crawler.next_request().since_id,
            until_id=crawler.cursor,
            page_size=config.crawl.page_size,
        )

    try:
        result = crawler.run()
    finally:
        if owned is not None:
            owned.close()

    if logger is not None:
        logger.info(
            "crawl_completed",
            f"archived {result.notes} notes in {result.pages} pages",
            pages=result.pages,
            notes=result.notes,
            users=len(result.users),
            cursor=result.cursor,
        )
    return result


def _as_note_id(value: str | None) -> NoteId | None:
    return NoteId(value) if value else None

