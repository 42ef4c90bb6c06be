"""
Testimony Prep Service - Witness & Deposition Preparation
=========================================================

A small, standalone service for:
1. Uploading case documents into a prep session
2. Generating cross-examination / deposition questions with a hosted LLM
3. Falling back to deterministic, document-derived questions when the LLM fails
4. Organizing questions into an outline and exporting it

No database, no auth required. Sessions live in memory.
"""

__version__ = "1.0.0"
