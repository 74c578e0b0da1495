"""Room services: ledger, connection tracking, fan-out, rounds and liveness.

This package contains pure(ish) room logic that is wired together by
``jackpot.room`` and driven by socket handlers and HTTP routes, keeping
transport concerns separated from the round mechanics.
"""
