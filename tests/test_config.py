"""Tests for configuration models, settings and query options."""

import pytest
from pydantic import ValidationError

from bqjob.core.config import HttpClientConfig, JobMonitorConfig, ResultPaginatorConfig
from bqjob.core.models.query_results import QueryResultsOptions
from bqjob.core.settings import BqJobSettings


class TestJobMonitorConfig:
    def test_fixed_interval_by_default(self):
        config = JobMonitorConfig()
        assert config.poll_interval == 0.5
        assert config.next_interval(0.5) == 0.5

    def test_backoff_is_capped(self):
        config = JobMonitorConfig(poll_interval=1.0, poll_backoff=2.0, poll_max_interval=5.0)
        intervals = [1.0]
        for _ in range(4):
            intervals.append(config.next_interval(intervals[-1]))
        assert intervals == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_max_below_interval_rejected(self):
        with pytest.raises(ValidationError):
            JobMonitorConfig(poll_interval=2.0, poll_max_interval=1.0)

    def test_frozen(self):
        config = JobMonitorConfig()
        with pytest.raises(ValidationError):
            config.poll_interval = 3.0


class TestFromAppSettings:
    def test_configs_follow_settings(self):
        settings = BqJobSettings(
            BQJOB_POLL_INTERVAL=2.0,
            BQJOB_POLL_MAX_INTERVAL=8.0,
            BQJOB_POLL_BACKOFF=1.5,
            BQJOB_RUNNING_RETRY_DELAY=0.3,
            BQJOB_HTTP_TIMEOUT=30.0,
            BQJOB_HTTP_RETRY_ATTEMPTS=5,
        )

        monitor = JobMonitorConfig.from_app_settings(settings)
        paginator = ResultPaginatorConfig.from_app_settings(settings)
        http = HttpClientConfig.from_app_settings(settings)

        assert (monitor.poll_interval, monitor.poll_max_interval, monitor.poll_backoff) == (2.0, 8.0, 1.5)
        assert paginator.running_retry_delay == 0.3
        assert http.total_timeout == 30.0
        assert http.retry_attempts == 5

    def test_base_url_trailing_slash_stripped(self):
        settings = BqJobSettings(BQJOB_API_BASE_URL="http://bq.test/bigquery/v2/")
        assert not str(settings.BQJOB_API_BASE_URL).endswith("/")


class TestQueryResultsOptions:
    def test_wire_params_use_camel_case_and_skip_local_options(self):
        options = QueryResultsOptions(
            auto_paginate=False,
            max_api_calls=4,
            max_results=100,
            page_token="abc",
            start_index=20,
            timeout_ms=1000,
            location="EU",
        )
        assert options.to_query_params() == {
            "maxResults": "100",
            "pageToken": "abc",
            "startIndex": "20",
            "timeoutMs": "1000",
            "location": "EU",
        }

    def test_merge_leaves_original_untouched(self):
        options = QueryResultsOptions(max_results=10)
        merged = options.merge(page_token="next")
        assert options.page_token is None
        assert merged.page_token == "next"
        assert merged.max_results == 10

    def test_coerce_accepts_both_spellings(self):
        assert QueryResultsOptions.coerce({"autoPaginate": False}).auto_paginate is False
        assert QueryResultsOptions.coerce({"auto_paginate": False}).auto_paginate is False
        assert QueryResultsOptions.coerce(None) == QueryResultsOptions()

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            QueryResultsOptions.coerce({"pageSize": 10})

    def test_negative_values_rejected(self):
        with pytest.raises(ValidationError):
            QueryResultsOptions(start_index=-1)
        with pytest.raises(ValidationError):
            QueryResultsOptions(max_api_calls=0)
