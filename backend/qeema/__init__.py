"""Application package for the Qeema educational platform backend.

The FastAPI application is built by `qeema.main.create_app`; routers,
services, repositories and models live in their own modules.
"""
