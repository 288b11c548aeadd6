"""
influx.py
---------

Thin wrapper around the InfluxDB v2 write endpoint for the agent.

One line-protocol record per request, posted to

    {url}/api/v2/write?org={org}&bucket={bucket}

with `Authorization: Token {token}`. Failures are logged and the record is
dropped; nothing is retried or buffered.

We expose:
    InfluxWriter(url, token, org, bucket, timeout=10.0)
    InfluxWriter.write(line) -> bool
    InfluxWriter.close()
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from config import config

log = logging.getLogger(__name__)

WRITE_PATH = "/api/v2/write"


class InfluxWriter:
    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = url.rstrip("/") + WRITE_PATH
        self.params: Dict[str, str] = {"org": org, "bucket": bucket}
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Token {token}",
                "Content-Type": "text/plain; charset=utf-8",
            }
        )

    @classmethod
    def from_config(cls, cfg: config.AgentConfig) -> "InfluxWriter":
        return cls(
            url=cfg.influxdb_url,
            token=cfg.influxdb_token,
            org=cfg.influxdb_org,
            bucket=cfg.influxdb_bucket,
            timeout=cfg.timeout,
        )

    def write(self, line: str) -> bool:
        """POST one record. True on a 2xx answer, False otherwise."""
        try:
            response = self.session.post(
                self.endpoint,
                params=self.params,
                data=line.encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.error("Failed to send data to InfluxDB: %s", exc)
            return False

        if not 200 <= response.status_code < 300:
            log.warning(
                "InfluxDB rejected write, status: %s: %s",
                response.status_code,
                response.text.strip(),
            )
            return False

        log.info("Data sent to InfluxDB, status: %s", response.status_code)
        return True

    def close(self) -> None:
        self.session.close()
