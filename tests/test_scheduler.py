import pytest

from confluence_scraper import config as cfg
from confluence_scraper.scheduler import GatherScheduler


class DummyEngine:
    def __init__(self):
        self.ran = []

    async def gather_target(self, target):
        self.ran.append(target.name)


def sample_app_config():
    scraper = cfg.ScraperSettings(
        otelCollectorEndpoint="http://collector", defaultFrequency="2min"
    )
    targets = [
        cfg.TargetConfig(name="a", url="https://a.example.com"),
        cfg.TargetConfig(name="b", url="https://b.example.com", frequency="1h"),
    ]
    return cfg.AppConfig(scraper=scraper, targets=targets)


def test_scheduler_start_registers_one_job_per_target():
    engine = DummyEngine()
    scheduler = GatherScheduler(sample_app_config(), engine)

    calls = []

    def fake_add_job(func, trigger, args, id, coalesce, max_instances, misfire_grace_time):
        calls.append(
            dict(
                id=id,
                coalesce=coalesce,
                max_instances=max_instances,
                misfire_grace_time=misfire_grace_time,
            )
        )

    started = []
    scheduler.scheduler.add_job = fake_add_job
    scheduler.scheduler.start = lambda: started.append(True)

    scheduler.start()

    assert started == [True]
    assert calls[0] == dict(id="a", coalesce=True, max_instances=1, misfire_grace_time=120)
    assert calls[1]["id"] == "b"
    assert calls[1]["misfire_grace_time"] == 3600


def test_scheduler_invalid_frequency_raises():
    app_config = cfg.AppConfig(
        scraper=cfg.ScraperSettings(otelCollectorEndpoint="http://collector"),
        targets=[cfg.TargetConfig(name="bad", url="https://x.example.com", frequency="0min")],
    )
    scheduler = GatherScheduler(app_config, DummyEngine())
    with pytest.raises(ValueError):
        scheduler.start()


@pytest.mark.asyncio
async def test_run_all_once_triggers_engine():
    engine = DummyEngine()
    scheduler = GatherScheduler(sample_app_config(), engine)

    await scheduler.run_all_once()

    assert set(engine.ran) == {"a", "b"}


@pytest.mark.asyncio
async def test_run_target_invokes_engine():
    engine = DummyEngine()
    app_config = sample_app_config()
    scheduler = GatherScheduler(app_config, engine)

    await scheduler._run_target(app_config.targets[0])
    assert engine.ran == ["a"]


@pytest.mark.asyncio
async def test_shutdown_invokes_scheduler_shutdown():
    scheduler = GatherScheduler(sample_app_config(), DummyEngine())
    called = {}

    def fake_shutdown(wait=True):
        called["wait"] = wait

    scheduler.scheduler.shutdown = fake_shutdown
    await scheduler.shutdown(wait=False)

    assert called["wait"] is False
