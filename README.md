# eveship

`eveship` is a library for working with JSON events produced by Suricata
(EVE output). It has two parts:

- **Outputs** that take JSON text and deliver it: to a file, to a named
  pipe, or to an Elasticsearch-compatible bulk endpoint.
- **Network data point (NDP) collection**, which distils the parts of an
  event worth keeping into small JSON documents, each with an id built from
  an MD5 digest, and skips a data point that repeats the last one sent of
  its kind.

## Installation

```
pip install eveship
```

To run the tests:

```
pip install "eveship[test]"
pytest
```

## Outputs (`eveship.sinks`, `eveship.elasticsearch`)

### `FileOutput`

`FileOutput(target)` takes a path, which it opens in append mode and owns,
or an open text stream, which stays the caller's. `write(json_string)`
writes the text plus a newline, flushes, and returns `True`. `close()`
closes the file only if `FileOutput` opened it. It can be used as a context
manager.

### `PipeOutput`

`PipeOutput(fd)` writes to an open file descriptor, such as a named pipe.
`write(json_string)` writes the text and a newline. It returns `True` on
success and adds one to `writes`. If the write fails, it logs a warning and
returns `False`. The descriptor stays the caller's.

### `ElasticsearchOutput`

`ElasticsearchSettings` holds these settings:

| Setting       | Default                                 |
|---------------|-----------------------------------------|
| `url`         | (required)                              |
| `index`       | `"suricata_$EVENTTYPE_$YEAR$MONTH$DAY"` |
| `username`    | `""`                                    |
| `password`    | `""`                                    |
| `insecure`    | `False`                                 |
| `debug`       | `False`                                 |
| `threads`     | `1`                                     |
| `retry_delay` | `5.0`                                   |

`ElasticsearchOutput(settings, session=None)` posts bulk bodies through a
`requests` session.

- `post_batch(body)` sends one request. The body goes to `url` with content
  type `application/x-ndjson`.
  - Basic authentication is used when both `username` and `password` are set.
  - Certificate checks are off when `insecure` is set.
  - On a connection error it logs a warning, sleeps `retry_delay` seconds and
    tries again until the server answers.
  - It returns `False` when the response reports insert errors, and `True`
    otherwise.
- `start()` spawns `threads` worker threads. Calling it a second time raises
  `RuntimeError`.
- `submit(payload)` queues a body for a worker to post.
- `stop()` lets the workers finish every queued body, then ends them.

Two helpers go with it:

- `response_has_errors(body)` tells whether a bulk response reports failures.
  A body that is not a JSON object, or has no `errors` member, counts as
  having none.
- `expand_index(template, event_type, now=None)` fills in an index name
  template:

| Placeholder  | Becomes                    |
|--------------|----------------------------|
| `$EVENTTYPE` | the event type, e.g. `ndp` |
| `$YEAR`      | four-digit year            |
| `$MONTH`     | two-digit month            |
| `$DAY`       | two-digit day              |

The template is scanned left to right. At each position the placeholders are
tried in the order of the table. For example, `suricata_$EVENTTYPE_$YEAR$MONTH$DAY`
becomes `suricata_ndp_20240131` for the event type `ndp` on 31 January 2024.

## Collecting data points (`eveship.ndp_*`)

### Settings and context (`eveship.ndp_core`)

`NdpSettings` is frozen and holds:

| Setting           | Meaning |
|-------------------|---------|
| `ignore_networks` | the networks treated as your own; build them with `parse_networks("10.0.0.0/8,192.168.0.0/16")` |
| `routes`          | the event types to collect; all eight by default |
| `smb_internal`    | collect SMB even between internal addresses |
| `smb_commands`    | the SMB commands of interest |
| `ftp_commands`    | the FTP commands of interest |
| `description`     | a description added to each document |
| `dns`             | copy the `src_dns` and `dest_dns` members of the event |
| `geoip`           | copy the `geoip_src` and `geoip_dest` members of the event |
| `debug`           | log each insert and skip |

`NdpContext(settings, output)` holds the collector's state:

- `output` is an optional callable. It is called as
  `output(json_text, "ndp", doc_id)` for every document sent.
- `sent` and `skipped` count the documents sent and the repeats skipped.
- `in_range(ip)` tells whether an address lies in `ignore_networks`.
  An address that cannot be parsed is never in range.
- `is_repeat(kind, doc_id)`, `skip(kind, doc_id)` and
  `emit(kind, document, doc_id, geoip_src, geoip_dest)` are the building
  blocks the collectors use. `emit` serialises the document, splices in any
  GeoIP JSON, calls `output` and returns the JSON text.

Other helpers in the module:

- `md5_hex(text)` returns the MD5 hex digest of a string.
- `append_geoip(json_text, key, value_json)` inserts a raw JSON member at the
  end of a JSON object text.

### Collectors

The main entry point is
`collect(ctx, event, event_type, src_ip, dest_ip, flow_id)`, in
`eveship.ndp_collector`. `event` is the decoded event as a dict. `collect`
routes the event to one of these handlers and returns the list of JSON texts
that were sent:

| Handler            | Module                   | Collects | Document id from |
|--------------------|--------------------------|----------|------------------|
| `collect_flow`     | `eveship.ndp_flow`       | outside IPv4 endpoints of flows that have a state | the address |
| `collect_fileinfo` | `eveship.ndp_flow`       | file hashes, name, magic, size | the file's MD5 |
| `collect_tls`      | `eveship.ndp_tls`        | certificate details, JA3/JA3S | `ja3:ja3s` |
| `collect_dns`      | `eveship.ndp_tls`        | queries only, not answers | the rrname |
| `collect_http`     | `eveship.ndp_http`       | the request, and the user agent as a separate document | hostname + URL; the user agent |
| `collect_ssh`      | `eveship.ndp_http`       | client and server software versions | `dest_ip:dest_port:server:client` |
| `collect_smb`      | `eveship.ndp_collector`  | listed SMB commands that have a filename | `command\|filename` |
| `collect_ftp`      | `eveship.ndp_collector`  | listed FTP commands that have command data | `command\|command_data` |

Routing follows three rules:

- An SMB event whose type is routed is always collected when `smb_internal`
  is set.
- In every other case, an event is skipped when both of its addresses are in
  `ignore_networks`.
- An event whose type is not in `routes` is skipped.

The handlers can also be called directly.

```python
from eveship.ndp_core import NdpContext, NdpSettings, parse_networks
from eveship.ndp_collector import collect

sent = []
ctx = NdpContext(
    NdpSettings(ignore_networks=parse_networks("10.0.0.0/8")),
    output=lambda text, index, doc_id: sent.append((doc_id, text)),
)
event = {"dns": {"type": "query", "rrname": "example.com", "rrtype": "A"}}
collect(ctx, event, "dns", "10.0.0.5", "203.0.113.9", "1234")
```

## What the package does not do

- It has no command-line program.
- It does not read EVE files or sockets. You decode the events and call
  `collect` yourself.
- It does not join NDP documents into bulk request bodies. The `output`
  callable gets each document with its index name and id, and you decide how
  to batch them and pass them to `ElasticsearchOutput.submit`.
  `expand_index` is a separate helper and is not applied automatically.
- It does no GeoIP or reverse-DNS lookups. It only copies the GeoIP and DNS
  members already present in the event.