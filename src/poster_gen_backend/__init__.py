"""
Poster Generator Backend - REST API for dynamic business posters

This package provides a FastAPI-based web service that turns a stored poster
template plus a business's form data into a printable PDF (or PNG) artifact.
It enables:

- Template, layout and asset (logo) catalog management
- Validation of submitted data against per-template field schemas
- Layered rendering contexts (defaults, customization, assets, user data)
- Jinja2 HTML rendering and headless Chromium rasterization
- Archival of every generated poster with its input snapshot
- User accounts with JWT access tokens, and simple orders

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - poster_service: Generation pipeline and poster record management
    - validation / context_builder / renderer / rasterizer: pipeline stages
    - catalog: Templates, layouts, assets and orders services
    - auth: Users, password hashing and JWT tokens
    - repositories / database: SQLite persistence
    - configuration: Config loading and merging logic
    - seed: Demo catalog bootstrap

Usage:
    Install the browser once:
        playwright install chromium

    Seed the demo catalog and run the API server with:
        python -m poster_gen_backend.seed
        uvicorn poster_gen_backend.main:app --reload --host 0.0.0.0 --port 8000
"""
