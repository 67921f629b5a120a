"""offer_server — FastAPI REST API and maintenance CLIs for offer funnels.

Exposes the FunnelEngine as a stateless HTTP API (create a session, render
and answer steps, go back, abandon) plus ``offer-reaper`` and ``offer-seed``
for cron jobs and deployments.
"""
