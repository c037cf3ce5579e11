"""
History engine: partitioning, identity resolution, sort-merge and interval building.

Modules
- partitioning: PartitionKeyPartitioner, repartition_and_sort, map_partitions
- identity: IdentityGraph, attribute_events
- zip: left_outer_zip
- builder / users / pages: HistoryBuilder and its two entity builders
- reconstruct: reconstruct() end to end over in-memory records
- lookup: state_at_events() point-in-time join
- stats: StatsAccumulator
"""
