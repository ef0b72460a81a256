"""
app/routers — FastAPI Routers Module
======================================

Purpose:
  Route definitions for the portfolio view service.

Routers:
  - home:  public read-only views (hidden items dropped)
  - admin: annotated views and optimistic mutations (JWT required)
"""
