"""
Filtered, sorted, cursor-paginated search over the document store.

- query_composer: turns caller filters into a store query plus in-memory predicates
- cursor: opaque resume tokens and per-session search state
- executor: runs a composed query one page at a time
"""
