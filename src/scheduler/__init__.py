"""Scheduler module for listing fetches and watch query delivery.

Schedule overview:
  - every 30 minutes (and once at startup) - Listing fetch
  - per watch query, at its own next_run    - Match and webhook delivery

Watch query timers are one-shot jobs owned by ``WatchQueryScheduler``; each
run re-arms the next one.
"""
