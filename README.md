# vehiclecmd

A client library for talking to connected vehicles through a fleet REST API.
It provides:

- `vehiclecmd.account`: build an `Account` from an OAuth token. The library
  picks the regional API server from the token's audiences. An `Account` can
  issue `GET` and `POST` requests and send vehicle commands.
- `vehiclecmd.inet`: a `Connection` that POSTs command datagrams to a vehicle
  over HTTPS, wakes a sleeping vehicle, and switches to another regional server
  when the server redirects it.
- `vehiclecmd.cache`: a `SessionCache` of per-vehicle `CacheEntry` records.
  It can be saved to and loaded from JSON.
- `vehiclecmd.schnorr`: Schnorr signatures over NIST P-256 with SHA-256 and
  RFC 6979 deterministic nonces.
- `vehiclecmd.connector`: the abstract `Connector` and `FleetAPIConnector`
  interfaces and the `AuthMethod` enumeration.
- `vehiclecmd.log`: a small process-wide logger with a settable level.

## Installation

```
pip install vehiclecmd
```

To run the test suite:

```
pip install "vehiclecmd[test]"
pytest
```

## Usage

### Accounts

```python
from vehiclecmd.account import new_account

# oauth_token is the access token obtained from your OAuth flow.
account = new_account(oauth_token, "")
print(account.host, account.subject)

body = account.get("api/1/vehicles")
account.send_vehicle_fleet_api_command("TESTVIN0000000000", "command/honk_horn", {})
```

`new_account` raises `ValueError` in two cases:

- the token does not have three dot-separated parts;
- the middle part is not unpadded base64 of a JSON object.

The library chooses the server as follows:

- It ignores audiences that start with `https://auth.tesla.`.
- It accepts only `fleet-api.` hosts under a trusted domain suffix (see
  `oauth_domain`).
- It prefers an audience that contains the token's `ou_code` region.
- If no audience qualifies, it uses `DEFAULT_DOMAIN`.

`build_user_agent` produces the `User-Agent` value. It joins the application
name with the library name and version. If no application name is given, the
name of the running script is used.

`Account.get` raises `vehiclecmd.inet.HTTPError` when the status is not 200 and
`ConnectionError` when the network fails. It reads at most 100,000 bytes of the
response.

`post`, `send_vehicle_fleet_api_command` and `update_key` go through
`vehiclecmd.inet.send_fleet_api_command`.

### Sending datagrams

```python
from vehiclecmd.inet import Connection, NotConnectedError

conn = Connection("TESTVIN0000000000", "Bearer token", "fleet-api.example.com", "my-app/1.0")
conn.wakeup(timeout=60)
conn.send(b"\x01\x02", timeout=10)
reply = conn.receive().get()
conn.close()
```

`send` base64-encodes the datagram and POSTs it to the vehicle's
`signed_command` endpoint. It then puts the decoded `response` field on the
queue that `receive()` returns. The queue holds up to five replies. `close()`
puts `None` on the queue, and any later `send` raises `NotConnectedError`.

`wakeup` polls the `wake_up` endpoint every 10 seconds until the vehicle
reports `online`. It raises `TimeoutError` if the timeout runs out first.

`send_fleet_api_command` raises one of the following:

- `ProtocolNotSupportedError` on HTTP 422.
- `VehicleNotAwakeError` on HTTP 503, and on HTTP 408 when the body says the
  vehicle is offline.
- `HTTPError` on any other status that is not 200.
- `CommandError` for network failures and responses longer than 100,000 bytes.

On HTTP 421, a `Connection` takes the server named after "use base URL:" in
the error body and uses it for later requests. It does this only when that
server has a trusted domain suffix.

`CommandError` and `HTTPError` provide `may_have_succeeded()` and
`temporary()`, so callers can decide whether a retry is safe.
`is_temporary(err)` returns `True` only for an exception whose `temporary()`
method returns true.

### Session cache

```python
from vehiclecmd.cache import SessionCache, import_from_file

cache = SessionCache(max_entries=10)
cache.update("TESTVIN0000000000", entries)  # a list of CacheEntry
cache.export_to_file("sessions.json")

restored = import_from_file("sessions.json")
sessions = restored.get_entry("TESTVIN0000000000")  # None if absent
```

When `max_entries` is greater than zero and an `update` goes past that size,
the cache evicts the vehicle whose most recent session is oldest. Zero means
the cache has no limit.

`export`/`import_cache` do the same job as the file functions, but work on
streams. Exported files hold session data, so treat them as sensitive.

### Schnorr signatures

```python
from vehiclecmd.schnorr import public_key_bytes, sign, verify

scalar = (3).to_bytes(32, "big")  # a made-up test key
signature = sign(scalar, b"hello world")
verify(public_key_bytes(scalar), b"hello world", signature)
```

- `sign` returns 96 bytes.
- `verify` returns `True` for a valid signature.
- `verify` raises `InvalidSignatureError` when the check fails, and
  `InvalidPublicKeyError` when the key is not an uncompressed curve point.
- `deterministic_nonce` exposes the RFC 6979 nonce derivation.

### Logging

```python
from vehiclecmd import log

log.set_level(log.Level.INFO)
log.info("connected to %s", "TESTVIN0000000000")
```

Messages are written to standard error with a timestamp and a level label.
Nothing is written until a level other than `Level.NONE` is set.

## What this package does not do

This package carries datagrams and stores session records, but it does not:

- perform the session handshake with a vehicle;
- build, sign, encrypt or decrypt the routable messages inside those datagrams;
- create the `CacheEntry` data itself;
- connect over Bluetooth;
- ship a command-line tool.