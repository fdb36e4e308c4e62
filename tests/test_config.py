import logging

from ride_metrics import config
from ride_metrics.infrastructure.cache_manager import MetricCacheManager, get_default_cache
from ride_metrics.logging_config import setup_logging


def test_cache_enabled_from_env(monkeypatch):
    monkeypatch.setenv('CACHE_ENABLED', 'FALSE')
    assert config.is_cache_enabled() is False
    monkeypatch.setenv('CACHE_ENABLED', 'true')
    assert config.is_cache_enabled() is True


def test_cache_enabled_from_file(monkeypatch, tmp_path):
    monkeypatch.delenv('CACHE_ENABLED', raising=False)
    monkeypatch.chdir(tmp_path)
    assert config.is_cache_enabled() is True

    (tmp_path / '.cache_config').write_text('enabled=false\n')
    assert config.is_cache_enabled() is False
    assert get_default_cache() is None

    (tmp_path / '.cache_config').write_text('enabled=true\n')
    assert isinstance(get_default_cache(), MetricCacheManager)


def test_float_from_env(monkeypatch):
    monkeypatch.setenv('DEPTH_THRESHOLD_KJ', '1500')
    assert config._float_from_env('DEPTH_THRESHOLD_KJ', 2000.0) == 1500
    monkeypatch.setenv('DEPTH_THRESHOLD_KJ', 'lots')
    assert config._float_from_env('DEPTH_THRESHOLD_KJ', 2000.0) == 2000
    monkeypatch.delenv('DEPTH_THRESHOLD_KJ')
    assert config._float_from_env('DEPTH_THRESHOLD_KJ', 2000.0) == 2000


def test_cache_files(tmp_path):
    cache = MetricCacheManager(str(tmp_path / 'cache'))
    key = cache.generate_cache_key('a/1', 'hcsr', 1)
    assert len(key) == 32
    assert key != cache.generate_cache_key('a/1', 'hcsr', 2)

    assert cache.get_cache('a/1', key) is None
    assert cache.set_cache('a/1', key, {'summary': {'r2': 0.9}, 'series': None})
    assert cache.get_cache('a/1', key) == {'summary': {'r2': 0.9}, 'series': None}
    assert cache.invalidate_cache('a/1') == 1


def test_corrupt_cache_file_is_a_miss(tmp_path):
    cache = MetricCacheManager(str(tmp_path))
    key = cache.generate_cache_key('b', 'hcsr', 1)
    (tmp_path / f'b_{key}.json').write_text('{not json')
    assert cache.get_cache('b', key) is None


def test_setup_logging_sets_package_level():
    package_logger = logging.getLogger('ride_metrics')
    previous = package_logger.level
    try:
        setup_logging('debug')
        assert package_logger.level == logging.DEBUG
        setup_logging('not-a-level')
        assert package_logger.level == logging.INFO
    finally:
        package_logger.setLevel(previous)
