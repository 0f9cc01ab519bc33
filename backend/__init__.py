"""
Task router API - FastAPI backend serving the issue event webhook and the
admin, issue panel and dashboard procedures.
"""
