"""prosync.integrations — outbound transports.

All HTTP traffic leaves through a gateway in this package, never through
bare ``requests`` calls in services or blueprints. Gateways accept an
injected ``requests.Session`` so tests can intercept calls.
"""
