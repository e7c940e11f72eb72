"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic; "now" is a parameter (utc_now is only
      the default clock handed to the shell)

Design Decisions:
    - Functional core separated from imperative shell: the tick pipeline does the IO,
      core decides the next state
"""
