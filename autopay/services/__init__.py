"""Services — imperative shell around the pure core.

Invariants:
    - Services own IO (DB sessions, RPC, key vault); decisions are delegated to core
    - Execution pipeline services never raise past their boundary

Design Decisions:
    - One class per collaborator so the Ticker and tests can inject fakes
"""
