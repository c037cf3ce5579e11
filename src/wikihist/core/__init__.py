"""
Core package aggregator for wikihist contracts (grammar, keys, schemas, tables, hashing, versioning).

## Contracts (single source of truth)
- Grammar: entity kinds, event types, diagnostics categories, timestamp/domain normalization.
- Keys: PartitionKey / StateKey / EventKey and their total orders.
- Schemas: pydantic event variants, snapshots, reconstructed intervals, error rows.
- Tables: descriptors for the IO layer to materialize outputs.
- Hashing/Serde: canonical JSON, stable hashes and pseudo ids.
- Versioning/Constants/Errors: schema version metadata, defaults, exception taxonomy.

## Notes
- Zero‑IO policy: stdlib + pydantic only; no file/network IO.
- Naming policy: enum `.value` and field/column names are lower_snake
  (the "empty-registration" diagnostics category is the one exception).
- Identity keys always lead with the domain: users `(domain, user_text)`,
  pages `(domain, title, namespace)`.

## Downstream usage
- wikihist.history: sorts, partitions and merges records by `keys`, resolves
  identity edges exposed by `schema` events, builds `UserState` / `PageState`.
- wikihist.io: builds Parquet schemas from `tables` and validates frames.
- wikihist.jobs: parses raw rows with `schema.parse_*` and reports diagnostics.

## Examples
```python
from wikihist.core.keys import EventKey, PartitionKey
from wikihist.core.schema import parse_page_event

ev = parse_page_event({
    "domain": "enwiki", "timestamp": "20040301120000", "event_type": "move",
    "page_id": 7, "title": "Foo", "namespace": 0,
    "new_title": "Bar", "new_namespace": 0,
})
EventKey(PartitionKey(ev.domain, ev.page_id, ev.timestamp[:4]), ev.timestamp)
```
"""
