"""Server-side HTTP endpoints"""
