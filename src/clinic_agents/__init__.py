"""Clinic agent service.

Five task agents (front desk, clinical documentation, claim scrubbing,
billing, analytics) behind a keyword dispatcher, plus a tool-using chat
pipeline over the clinic's patient, scheduling, claims and statewide
Medicaid data. Progress is streamed to the dashboard as server-sent events.
"""
