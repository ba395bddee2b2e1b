"""WiFi orchestration engine.

One API over the native WiFi tools of Windows, macOS and Linux:
- Platform adapters for netsh, networksetup/airport and nmcli/iwconfig
- Scan and connection state machines with retry and backoff
- Signal monitoring, post-connect redirects and lifecycle events
- Encrypted credential storage
"""

__version__ = "1.0.0"
