# Dial Hub
# Copyright (C) 2026 Dial Hub contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Shared HTTP utilities for the dial hub services."""

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Cache-Control",
}

# Headers for the long-lived subscribe response.  Publisher and subscriber
# may sit on different origins/devices on the local network.
SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control",
}
