"""Shared constants for mdok.

Centralized constants to avoid duplication and ensure consistency across modules.
"""

from __future__ import annotations

BYTES_PER_GIB = 1024 * 1024 * 1024

# Default root for configs, data and logs (overridable via MDOK_HOME).
DEFAULT_HOME_DIRNAME = ".mdok"
HOME_ENV_VAR = "MDOK_HOME"

# Session segmentation: consecutive samples further apart than
# GAP_INTERVAL_MULTIPLIER * interval + GAP_SLACK_SECONDS belong to different sessions.
GAP_INTERVAL_MULTIPLIER = 2
GAP_SLACK_SECONDS = 5

# Label that forces proxy detection on ("true"/"yes"/"1") or off ("false"/"no"/"0").
PROXY_LABEL_KEY = "mdok.proxy"

# Image/name substrings of reverse proxies and API gateways that relay traffic to the internet.
DEFAULT_PROXY_PATTERNS = (
    "traefik",
    "nginx",
    "caddy",
    "haproxy",
    "envoy",
    "litellm",
)

# Connection tables read from inside the container namespace.
PROC_NET_TCP_FILES = ("/proc/net/tcp", "/proc/net/tcp6")
CONNTRACK_FILE = "/proc/net/nf_conntrack"

# Upper bound for concurrent stats fetches per tick.
DEFAULT_MAX_WORKERS = 16

DEFAULT_REGION = "us-east-1"
