"""Domain data tools for the clinic agents.

Each module in this package contains "tools" — async functions a model can
call to read or update clinic data through the clinic API. They return
plain dicts that are serialized straight back to the model.

Tools are organized by domain:
- patient.py:     Patient lookup by name or MRN
- scheduling.py:  Appointment listing and cancellation
- billing.py:     Insurance coverage and claims
- analytics.py:   Clinic metrics (denial rate, revenue, claim counts)
- medicaid.py:    Statewide Medicaid providers, claims, patients, anomalies
- registry.py:    Name → schema + executor mapping used by the chat pipeline
"""
