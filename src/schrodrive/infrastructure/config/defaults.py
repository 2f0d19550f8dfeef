"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "schrodrive",
    "environment": "dev",
    "http_user_agent": "SchroDrive/0.1.0",
    "indexer": {
        "provider": "auto",
        "jackett": {
            "url": "",
            "api_key": "",
            "categories": [],
            "indexer_ids": [],
            "search_limit": 100,
            "timeout_seconds": 10.0,
            "redirect_max_hops": 5,
        },
        "prowlarr": {
            "url": "",
            "api_key": "",
            "categories": [],
            "indexer_ids": [],
            "search_limit": 100,
            "timeout_seconds": 120.0,
            "redirect_max_hops": 5,
        },
    },
    "debrid": {
        "providers": ["torbox", "realdebrid"],
        "torbox_base_url": "https://api.torbox.app",
        "rd_api_base": "https://api.real-debrid.com/rest/1.0",
        "timeout_seconds": 20.0,
    },
    "gateway": {
        "backoff_base_seconds": 60.0,
        "backoff_max_seconds": 900.0,
        "cache_ttl_seconds": 60.0,
        "default_delay_seconds": 1.0,
    },
    "overseerr": {
        "poll_interval_seconds": 30.0,
        "poll_take": 50,
        "processed_capacity": 1000,
    },
    "scanner": {
        "interval_seconds": 600.0,
        "min_interval_seconds": 60.0,
    },
    "services": {
        "run_webhook": True,
        "run_poller": False,
        "run_dead_scanner": False,
        "run_dead_scanner_watch": False,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
}
