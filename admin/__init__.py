"""
Site Publisher - Admin Package

FastAPI application exposing the publishing API.

Usage:
    uvicorn admin.main:create_app --factory --port 7410
"""
