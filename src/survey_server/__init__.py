"""survey_server — FastAPI REST server for the cultural survey.

Exposes session admission, answer upserts, attention checks, region
availability and reference data under ``/api/v1``.  Run with
``survey-server`` or ``uvicorn survey_server.app:app``.
"""
