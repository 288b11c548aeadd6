"""Tests for the InfluxDB writer."""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from config.config import AgentConfig
from delivery.influx import InfluxWriter

LINE = "system_metrics,host=localhost cpu_usage=1 1700000000000000000"


def make_response(status, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.text = text
    return response


@pytest.fixture
def session():
    s = requests.Session()
    s.post = MagicMock(return_value=make_response(204))
    return s


@pytest.fixture
def writer(session):
    return InfluxWriter("http://influx:8086/", "secret", "home", "metrics", timeout=2.5, session=session)


class TestInfluxWriter:
    def test_posts_line_to_write_endpoint(self, writer, session):
        assert writer.write(LINE) is True

        session.post.assert_called_once_with(
            "http://influx:8086/api/v2/write",
            params={"org": "home", "bucket": "metrics"},
            data=LINE.encode("utf-8"),
            timeout=2.5,
        )

    def test_token_header(self, writer, session):
        assert session.headers["Authorization"] == "Token secret"
        assert session.headers["Content-Type"].startswith("text/plain")

    def test_prepared_url_matches_influx_api(self, writer):
        request = requests.Request(
            "POST", writer.endpoint, params=writer.params, data=LINE
        ).prepare()
        assert request.url == "http://influx:8086/api/v2/write?org=home&bucket=metrics"

    def test_non_2xx_is_logged_and_reported(self, writer, session, caplog):
        session.post.return_value = make_response(401, '{"code":"unauthorized"}')

        with caplog.at_level(logging.WARNING):
            assert writer.write(LINE) is False

        assert "401" in caplog.text
        assert session.post.call_count == 1

    def test_connection_error_is_not_retried(self, writer, session, caplog):
        session.post.side_effect = requests.ConnectionError("refused")

        assert writer.write(LINE) is False

        assert session.post.call_count == 1
        assert "Failed to send data to InfluxDB" in caplog.text

    def test_from_config(self):
        cfg = AgentConfig(
            interval=5,
            exclude_gpu=False,
            influxdb_url="https://influx.example",
            influxdb_token="tok",
            influxdb_org="org",
            influxdb_bucket="bucket",
            timeout=4.0,
        )
        writer = InfluxWriter.from_config(cfg)
        try:
            assert writer.endpoint == "https://influx.example/api/v2/write"
            assert writer.params == {"org": "org", "bucket": "bucket"}
            assert writer.timeout == 4.0
            assert writer.session.headers["Authorization"] == "Token tok"
        finally:
            writer.close()
