import pytest

from pricedrop.core.config import settings
from pricedrop.core.errors import StoreUnavailableError
from pricedrop.jobs import monitor_prices
from pricedrop.services.monitor import PriceMonitor, build_monitor
from pricedrop.services.notifier import LogNotifier
from pricedrop.services.page_source import PageSource


@pytest.fixture
def no_database(monkeypatch):
    monkeypatch.setattr(monitor_prices, "create_tables", lambda engine: None)
    monkeypatch.setattr(monitor_prices, "get_engine", lambda: None)


def test_main_prints_run_summary(monkeypatch, capsys, no_database):
    async def fake_run_job():
        return {"checked": 4, "notified": 1, "failed": 1, "batches": 1}

    monkeypatch.setattr(monitor_prices, "run_job", fake_run_job)

    assert monitor_prices.main() == 0
    assert "checked=4 notified=1 failed=1" in capsys.readouterr().out


def test_main_exits_non_zero_when_store_is_down(monkeypatch, no_database):
    async def fake_run_job():
        raise StoreUnavailableError("could not connect to server")

    monkeypatch.setattr(monitor_prices, "run_job", fake_run_job)

    assert monitor_prices.main() == 1


def test_build_monitor_wires_settings(monkeypatch, session_factory):
    monkeypatch.setattr(settings, "SMTP_HOST", "")

    monitor = build_monitor(session_factory)

    assert isinstance(monitor, PriceMonitor)
    assert monitor.store.session_factory is session_factory
    assert isinstance(monitor.extractor.page_source, PageSource)
    assert isinstance(monitor.comparator.notifier, LogNotifier)
    assert monitor.batch_size == settings.BATCH_SIZE
