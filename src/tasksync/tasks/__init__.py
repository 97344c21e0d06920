"""
Task/project sync core.

Components:
- task_models.py: entities, drafts, patches, filter spec, record conversion
- task_filters.py: pure filter predicate + focus categorization
- task_stats.py: aggregate counters for dashboards
- entity_store.py: optimistic apply/rollback protocol shared by both stores
- task_store.py / project_store.py: the two collections
- reconciler.py: change-feed driven refetch-and-replace
- status_controller.py: completion toggle state machine (undo, exit timer)
- snapshot_cache.py: best-effort JSON cache across restarts
"""
