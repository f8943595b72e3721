"""Helpers shared by the operator's handlers and Cloudflare client."""
