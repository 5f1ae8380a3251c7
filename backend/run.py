#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves the booking engine with auto-reload; production deployments run
uvicorn directly against ``franchise_booking.main:app``.
"""
import os
from pathlib import Path

import uvicorn

from franchise_booking.core.config import settings

backend_dir = Path(__file__).parent
os.chdir(backend_dir)

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting booking engine ({settings.environment}) at http://localhost:{port}")
    print(f"API docs: http://localhost:{port}/docs")

    uvicorn.run(
        "franchise_booking.main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
