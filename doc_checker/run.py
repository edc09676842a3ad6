#!/usr/bin/env python3
"""
Quick runner for Document Checker
=================================

Usage:
    python -m doc_checker.run
    # or
    python doc_checker/run.py
"""

import uvicorn

if __name__ == "__main__":
    print("Starting Document Checker...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "doc_checker.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
