"""Tests for click/impression recording and the background wrapper."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.clock import FixedClock
from app.db.models import Click, Impression
from app.services.background_tasks import record_click_background, record_impression_background
from app.services.event_recorder import EventRecorder
from tests.conftest import NOW


class TestRecordImpression:

    @pytest.mark.asyncio
    async def test_first_impression_is_unique(self, session, seed, clock):
        url = await seed.url()
        recorder = EventRecorder(session, clock=clock)

        impression = await recorder.record_impression(url.id, "1.2.3.4", referrer="https://news.ycombinator.com/item?id=1")

        assert impression.is_unique is True
        assert impression.source == "news.ycombinator.com"

    @pytest.mark.asyncio
    async def test_repeat_within_window_not_unique(self, session, seed, clock):
        url = await seed.url()
        recorder = EventRecorder(session, clock=clock)

        await recorder.record_impression(url.id, "1.2.3.4")
        repeat = await recorder.record_impression(url.id, "1.2.3.4")
        other_ip = await recorder.record_impression(url.id, "5.6.7.8")

        assert repeat.is_unique is False
        assert other_ip.is_unique is True

    @pytest.mark.asyncio
    async def test_repeat_after_window_is_unique(self, session, seed, clock):
        url = await seed.url()
        await EventRecorder(session, clock=clock).record_impression(url.id, "1.2.3.4")

        later = EventRecorder(session, clock=FixedClock(NOW + timedelta(minutes=31)))
        impression = await later.record_impression(url.id, "1.2.3.4")

        assert impression.is_unique is True

    @pytest.mark.asyncio
    async def test_dedup_is_per_url(self, session, seed, clock):
        first = await seed.url()
        second = await seed.url()
        recorder = EventRecorder(session, clock=clock)

        await recorder.record_impression(first.id, "1.2.3.4")
        impression = await recorder.record_impression(second.id, "1.2.3.4")

        assert impression.is_unique is True

    @pytest.mark.asyncio
    async def test_without_ip_counts_as_unique(self, session, seed, clock):
        url = await seed.url()
        recorder = EventRecorder(session, clock=clock)

        await recorder.record_impression(url.id)
        impression = await recorder.record_impression(url.id)

        assert impression.is_unique is True
        assert impression.source == ""


class TestRecordClick:

    @pytest.mark.asyncio
    async def test_stores_fields(self, session, seed, clock):
        url = await seed.url()

        await EventRecorder(session, clock=clock).record_click(
            url.id,
            ip_address="1.2.3.4",
            user_agent="Mozilla/5.0",
            referrer="https://google.com/",
            country="ID",
            device_type="mobile",
            browser="Firefox",
        )

        click = (await session.execute(select(Click))).scalar_one()
        assert click.url_id == url.id
        assert click.country == "ID"
        assert click.referrer == "https://google.com/"


class TestBackgroundRecording:

    @pytest.mark.asyncio
    async def test_records_with_own_session(self, session_maker):
        await record_impression_background(
            url_id=7,
            ip_address="1.2.3.4",
            referrer="https://t.co/abc",
            session_maker=session_maker,
        )

        async with session_maker() as check:
            impression = (await check.execute(select(Impression))).scalar_one()

        assert impression.url_id == 7
        assert impression.source == "t.co"

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, caplog):
        def broken_session_maker():
            raise RuntimeError("database unavailable")

        await record_impression_background(url_id=7, session_maker=broken_session_maker)

        assert "Failed to record impression for URL 7" in caplog.text

    @pytest.mark.asyncio
    async def test_click_recorded_with_own_session(self, session_maker):
        await record_click_background(
            url_id=3,
            ip_address="1.2.3.4",
            country="SG",
            session_maker=session_maker,
        )

        async with session_maker() as check:
            click = (await check.execute(select(Click))).scalar_one()

        assert click.url_id == 3
        assert click.country == "SG"
