import pytest

from webfuzzer.core.config import PROFILES, DiscoveryConfig, GeneratorOptions, ScanConfig
from webfuzzer.core.errors import ConfigurationError


def test_defaults():
    cfg = ScanConfig()
    assert (cfg.max_concurrent, cfg.test_delay, cfg.max_retries) == (5, 0.1, 3)
    assert cfg.target_files == ["/etc/passwd", "/etc/shadow"]
    cfg.validate()


@pytest.mark.parametrize("name,concurrency,delay", [
    ("quick", 10, 0.05), ("deep", 5, 0.1), ("stealth", 1, 1.0), ("aggressive", 20, 0.0),
])
def test_profiles(name, concurrency, delay):
    cfg = ScanConfig.from_profile(name)
    assert (cfg.max_concurrent, cfg.test_delay) == (concurrency, delay)
    cfg.validate()


def test_profile_overrides_and_isolation():
    cfg = ScanConfig.from_profile("quick", max_concurrent=2)
    assert cfg.max_concurrent == 2
    assert cfg.max_tests == 100
    assert PROFILES["quick"]["max_concurrent"] == 10


def test_unknown_profile():
    with pytest.raises(ConfigurationError, match="ludicrous"):
        ScanConfig.from_profile("ludicrous")


@pytest.mark.parametrize("overrides,fragment", [
    ({"max_concurrent": 0}, "max_concurrent"),
    ({"max_concurrent": 21}, "max_concurrent"),
    ({"test_delay": -0.1}, "test_delay"),
    ({"settle_delay": -1}, "settle_delay"),
    ({"max_retries": 0}, "max_retries"),
    ({"request_timeout": 0}, "request_timeout"),
    ({"max_tests": 0}, "max_tests"),
    ({"discovery": DiscoveryConfig(min_risk="huge")}, "min_risk"),
    ({"generator": GeneratorOptions(max_depth=0)}, "max_depth"),
])
def test_validation(overrides, fragment):
    with pytest.raises(ConfigurationError, match=fragment):
        ScanConfig(**overrides).validate()


def test_cache_key_tracks_options():
    assert GeneratorOptions().cache_key() == GeneratorOptions().cache_key()
    assert GeneratorOptions().cache_key() != GeneratorOptions(max_depth=2).cache_key()
    assert GeneratorOptions(mutations=[]).cache_key() != GeneratorOptions().cache_key()
