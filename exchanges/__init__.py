"""
Exchange Connectors Package

Each exchange has its own subfolder with:
- api_client.py: REST API logic (retrieval only, returns raw payloads)
- normalizers.py: conversion of raw payloads into core.schemas models
"""
