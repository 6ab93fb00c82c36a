"""Bulk output to Elasticsearch-compatible servers (Elasticsearch, OpenSearch, Zinc)."""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime

import requests

log = logging.getLogger(__name__)

USER_AGENT = "eveship"
CONTENT_TYPE = "application/x-ndjson"


@dataclass
class ElasticsearchSettings:
    """Connection and behaviour settings for the bulk output."""

    url: str
    index: str = "suricata_$EVENTTYPE_$YEAR$MONTH$DAY"
    username: str = ""
    password: str = ""
    insecure: bool = False
    debug: bool = False
    threads: int = 1
    retry_delay: float = 5.0


def expand_index(template: str, event_type: str, now: datetime | None = None) -> str:
    """Expand $EVENTTYPE, $YEAR, $MONTH and $DAY in an index name template.

    The template is scanned left to right; at each position the tokens are
    tried in that fixed order, and the character following any expansion is
    copied as is.
    """
    now = now or datetime.now()
    tokens = (
        ("$EVENTTYPE", event_type),
        ("$YEAR", str(now.year)),
        ("$MONTH", f"{now.month:02d}"),
        ("$DAY", f"{now.day:02d}"),
    )
    out: list[str] = []
    pos = 0
    end = len(template)
    while pos < end:
        for token, value in tokens:
            if template.startswith(token, pos):
                out.append(value)
                pos += len(token)
        if pos < end:
            out.append(template[pos])
        pos += 1
    return "".join(out)


def response_has_errors(body: str) -> bool:
    """Tell whether a bulk response reports failed inserts.

    A response that is not a JSON object, or has no "errors" member, is
    taken as having none.
    """
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return False
    if not isinstance(parsed, dict) or "errors" not in parsed:
        return False
    errors = parsed["errors"]
    if errors is None or errors is False:
        return False
    return errors != "false"


class ElasticsearchOutput:
    """Posts batches to the bulk endpoint from a pool of worker threads."""

    def __init__(self, settings: ElasticsearchSettings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self._session = session if session is not None else requests.Session()
        self._queue: queue.Queue[str | None] = queue.Queue()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Spawn the worker threads."""
        if self._threads:
            raise RuntimeError("Elasticsearch output already started")
        log.info("Spawning %d Elasticsearch threads.", self.settings.threads)
        for number in range(self.settings.threads):
            thread = threading.Thread(target=self._worker, name=f"elasticsearch-{number}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Let the workers finish every queued batch, then end them."""
        for _ in self._threads:
            self._queue.put(None)
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def submit(self, payload: str) -> None:
        """Queue a batch body for one of the workers to post."""
        self._queue.put(payload)

    def post_batch(self, body: str) -> bool:
        """Post one bulk body, retrying until the server answers.

        Returns False when the server reports insert errors.
        """
        settings = self.settings
        auth = (settings.username, settings.password) if settings.username and settings.password else None
        headers = {"Content-Type": CONTENT_TYPE, "User-Agent": USER_AGENT}
        while True:
            try:
                response = self._session.post(
                    settings.url,
                    data=body.encode("utf-8"),
                    headers=headers,
                    auth=auth,
                    verify=not settings.insecure,
                )
                break
            except requests.RequestException as exc:
                log.warning(
                    "Couldn't connect to the Elasticsearch server [%s]. Sleeping for %s seconds.....",
                    exc,
                    settings.retry_delay,
                )
                time.sleep(settings.retry_delay)

        text = response.text
        if settings.debug:
            log.debug("Response from Elasticsearch: %s", text)
        if response_has_errors(text):
            log.warning("Failure inserting into Elasticsearch! Result codes: %s", text)
            return False
        return True

    def _worker(self) -> None:
        while True:
            payload = self._queue.get()
            try:
                if payload is None:
                    return
                self.post_batch(payload)
            except Exception:
                log.exception("Elasticsearch worker failed to post a batch")
            finally:
                self._queue.task_done()