"""Permits crawler.

Drives a headless browser through municipal permit portals built on the
EnerGov (single-page application) and Accela (server-rendered) platforms and
returns normalized permit records.
"""
