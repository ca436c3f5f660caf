"""FastAPI host for the Helpdesk engine."""
