"""Wiring of the board services into one application-scoped object."""

from __future__ import annotations

import random
from dataclasses import dataclass

from lurk.core.expiry import Clock, utcnow
from lurk.core.settings import Settings
from lurk.services.chat import ChatRelay
from lurk.services.events import EventBus
from lurk.services.fanout import ConnectionHub, Fanout
from lurk.services.names import NameRegistry
from lurk.services.purge import PurgeScheduler
from lurk.services.rate_limit import ChatTokenBucket, RateLimiter
from lurk.services.reports import ReportSink
from lurk.services.signaling import SignalingRelay
from lurk.services.store import ContentStore
from lurk.services.uploads import UploadStorage


@dataclass
class Board:
    """Every stateful service of one running application."""

    settings: Settings
    clock: Clock
    events: EventBus
    store: ContentStore
    uploads: UploadStorage
    reports: ReportSink
    limiter: RateLimiter
    names: NameRegistry
    hub: ConnectionHub
    fanout: Fanout
    chat: ChatRelay
    signaling: SignalingRelay
    scheduler: PurgeScheduler

    def chat_bucket(self) -> ChatTokenBucket:
        """Return a fresh per-connection chat bucket."""
        return ChatTokenBucket(
            capacity=self.settings.chat_bucket_capacity,
            refill_per_second=self.settings.chat_refill_per_second,
            clock=self.clock,
        )


def build_board(
    settings: Settings,
    clock: Clock = utcnow,
    rng: random.Random | None = None,
) -> Board:
    """Create and connect all board services from ``settings``."""
    events = EventBus()
    uploads = UploadStorage(
        settings.upload_dir,
        url_prefix=settings.upload_url_prefix,
        max_bytes=settings.max_upload_bytes,
        allowed_types=settings.allowed_image_types,
        clock=clock,
    )
    store = ContentStore(
        ttl_seconds=settings.thread_ttl_seconds,
        reactions=settings.reaction_emojis,
        events=events,
        clock=clock,
        remove_file=uploads.discard,
        title_max_length=settings.title_max_length,
        body_max_length=settings.body_max_length,
        reply_max_length=settings.reply_max_length,
    )
    limiter = RateLimiter(settings.rate_limits, clock=clock)
    names = NameRegistry(
        prefix=settings.name_prefix,
        reservation_seconds=settings.name_reservation_seconds,
        clock=clock,
        rng=rng,
    )
    hub = ConnectionHub(queue_size=settings.ws_queue_size)
    scheduler = PurgeScheduler(
        store,
        interval_seconds=settings.purge_interval_seconds,
        uploads=uploads,
        orphan_age_seconds=settings.thread_ttl_seconds,
        sweepers=[names.sweep, limiter.evict_idle],
    )
    return Board(
        settings=settings,
        clock=clock,
        events=events,
        store=store,
        uploads=uploads,
        reports=ReportSink(
            settings.reports_path,
            details_max_length=settings.report_details_max_length,
            clock=clock,
        ),
        limiter=limiter,
        names=names,
        hub=hub,
        fanout=Fanout(hub, events),
        chat=ChatRelay(
            hub, names, limiter, max_length=settings.chat_max_length, clock=clock
        ),
        signaling=SignalingRelay(
            hub,
            name_max_length=settings.video_name_max_length,
            text_max_length=settings.chat_max_length,
            clock=clock,
        ),
        scheduler=scheduler,
    )
