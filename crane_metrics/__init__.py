"""
Crane Metrics — Operational Metrics Aggregation & Live-Sync Engine

Turns raw port-terminal records (hourly lift logs, delay records, work
shifts, supervisor ratings, vehicles) into dashboard-ready KPI views and
keeps those views fresh while operators and supervisors write
concurrently.

To back the engine with a real database:
    Implement store.RecordStore over the database client, translating
    store.Filter objects into its query language and bridging its change
    feed to subscriber callbacks. Views and aggregation stay unchanged.

To connect a front end:
    Build a view with one of the dashboard.*_view() factories, wrap it in
    sync.LiveViewSynchronizer, and render ``snapshot.payload.to_dict()``
    from a listener each time a new snapshot is published.

To change the productivity target or rating bands:
    Edit TARGET_LIFTS_PER_HOUR or RATING_BANDS in config.
"""
