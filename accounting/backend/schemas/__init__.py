"""
Request and response schemas.

base.py holds the response envelopes; every other module matches one API
area (auth, admin, company, module, client, lead, offer, task,
time_tracking, notification, email, ai).
"""
