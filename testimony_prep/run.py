#!/usr/bin/env python3
"""
Quick runner for Testimony Prep Service
=======================================

Usage:
    python -m testimony_prep.run
"""

import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    print("Starting Testimony Prep Service...")
    print(f"API docs: http://localhost:{port}/docs")
    print(f"Health:   http://localhost:{port}/health")
    print()

    uvicorn.run(
        "testimony_prep.api:app",
        host="0.0.0.0",
        port=port,
        reload=True
    )
