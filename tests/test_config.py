"""
Tests for arginv/config.py configuration loading.

Covers:
- Defaults
- ARGINV_* environment variables
- CLI arguments overriding environment
- List parsing for subscriptions and queries
- Validation of export format, page size and parallelism
"""
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arginv.config import InventoryConfig, build_config, load_env_config, merge_configs
from arginv.exceptions import ConfigError
from inventory_collect import build_parser


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        config = build_config(parse(), environ={})

        assert config == InventoryConfig()
        assert config.export_format == 'none'
        assert config.output == '.'
        assert config.page_size == 5000
        assert config.parallel_queries == 1
        assert config.subscriptions == []
        assert config.log_dir is None
        assert not config.skip_check


class TestEnvironment:
    """Tests for ARGINV_* variables."""

    def test_load_env_config(self):
        env = {
            'ARGINV_SUBSCRIPTIONS': 'sub-a, sub-b,,',
            'ARGINV_EXPORT_FORMAT': 'JSON',
            'ARGINV_PAGE_SIZE': '1000',
            'ARGINV_PARALLEL_QUERIES': '4',
            'ARGINV_QUERIES': 'VirtualMachines,KeyVaults',
            'ARGINV_OUTPUT': '/tmp/inventory',
            'UNRELATED': 'x',
        }

        config = load_env_config(env)

        assert config == {
            'subscriptions': ['sub-a', 'sub-b'],
            'export_format': 'JSON',
            'page_size': 1000,
            'parallel_queries': 4,
            'queries': ['VirtualMachines', 'KeyVaults'],
            'output': '/tmp/inventory',
        }

    def test_empty_values_ignored(self):
        assert load_env_config({'ARGINV_OUTPUT': '', 'ARGINV_PAGE_SIZE': ''}) == {}

    def test_env_applied(self):
        config = build_config(parse(), environ={'ARGINV_EXPORT_FORMAT': 'CSV', 'ARGINV_LOG_LEVEL': 'DEBUG'})

        assert config.export_format == 'csv'
        assert config.log_level == 'DEBUG'

    def test_invalid_env_integer(self):
        with pytest.raises(ConfigError, match="ARGINV_PAGE_SIZE"):
            load_env_config({'ARGINV_PAGE_SIZE': 'lots'})


class TestPriority:
    """Tests for CLI over environment priority."""

    def test_cli_overrides_env(self):
        env = {'ARGINV_PAGE_SIZE': '1000', 'ARGINV_OUTPUT': 'env-out', 'ARGINV_SUBSCRIPTIONS': 'env-sub'}

        config = build_config(parse('--page-size', '200', '--subscriptions', 'cli-sub'), environ=env)

        assert config.page_size == 200
        assert config.subscriptions == ['cli-sub']
        assert config.output == 'env-out'

    def test_repeated_subscriptions_flag(self):
        config = build_config(
            parse('--subscriptions', 'sub-a,sub-b', '--subscriptions', 'sub-c'), environ={}
        )
        assert config.subscriptions == ['sub-a', 'sub-b', 'sub-c']

    def test_export_format_case_insensitive(self):
        assert build_config(parse('--export-format', 'JSON'), environ={}).export_format == 'json'

    def test_skip_check(self):
        assert build_config(parse('--skip-check'), environ={}).skip_check

    def test_merge_configs(self):
        assert merge_configs({'a': 1, 'b': 2}, {'b': 3, 'c': None}) == {'a': 1, 'b': 3}


class TestValidation:
    """Tests for rejected settings."""

    @pytest.mark.parametrize("value", ['0', '-10'])
    def test_bad_page_size(self, value):
        with pytest.raises(ConfigError):
            build_config(parse('--page-size', value), environ={})

    def test_bad_page_size_env(self):
        with pytest.raises(ConfigError):
            build_config(parse(), environ={'ARGINV_PAGE_SIZE': '0'})

    def test_bad_export_format_env(self):
        with pytest.raises(ConfigError):
            build_config(parse(), environ={'ARGINV_EXPORT_FORMAT': 'xlsx'})

    def test_bad_export_format_cli(self):
        with pytest.raises(SystemExit):
            parse('--export-format', 'xlsx')

    @pytest.mark.parametrize("value", ['0', '9'])
    def test_parallel_out_of_range(self, value):
        with pytest.raises(ConfigError):
            build_config(parse('--parallel-queries', value), environ={})

    def test_empty_output(self):
        with pytest.raises(ConfigError):
            build_config(parse('--output', ''), environ={})
