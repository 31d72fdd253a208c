"""
Pytest fixtures for the http-get test suite.

- http_mocking: HTTPX MockTransport reflecting server and failure injectors
- tls_server: local HTTPS server with a throwaway trustme authority
"""
