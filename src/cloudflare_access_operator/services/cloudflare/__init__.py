"""Cloudflare Access API client."""
