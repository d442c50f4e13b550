"""JBin middleware: request IDs, access logging, security headers, rate limiting."""
